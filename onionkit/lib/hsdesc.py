'''
Rendezvous (v2 hidden service) descriptors and introduction points.
'''
import copy
import struct
import logging
import datetime

import onionkit.exc as s_exc

import onionkit.lib.onion as s_onion
import onionkit.lib.const as s_const
import onionkit.lib.tordoc as s_tordoc
import onionkit.lib.logging as s_logging
import onionkit.lib.encoding as s_encoding
import onionkit.lib.crypto.rsa as s_rsa

logger = logging.getLogger(__name__)

DESC_VERSION = 2
PROTOCOL_VERSIONS = (2, 3)
REPLICAS = (0, 1)

DOC_FIELD = 'rendezvous-service-descriptor'
INTRO_FIELD = 'introduction-point'

def _utc(valu):
    if valu.tzinfo is None:
        return valu.replace(tzinfo=datetime.timezone.utc)
    return valu.astimezone(datetime.timezone.utc)

def secretId(permid, now, replica):
    '''
    Compute the secret-id-part for a permanent id, time and replica.

    The time period is the number of days since the epoch, offset by
    ``permid[0] / 256`` of a day so services do not all rotate at once.
    '''
    offs = permid[0] * s_const.day // 256
    period = (int(_utc(now).timestamp()) + offs) // s_const.day
    return s_encoding.sha1(struct.pack('>I', period & 0xffffffff) + bytes([replica]))

def descId(permid, secretid):
    return s_encoding.sha1(permid + secretid)

def calcDescIdByOnion(onion, now, replica):
    '''
    Compute the base32 descriptor id for a v2 onion address.
    '''
    permid = s_encoding.b32dec(onion)
    if len(permid) != s_onion.V2_ADDR_SIZE:
        raise s_exc.MalformedInput(mesg='Not a v2 onion address.', onion=onion)
    return s_encoding.b32enc(descId(permid, secretId(permid, now, replica)))

class HsDesc:
    '''
    A rendezvous service descriptor.

    Instances are treated as values: ``finalize()``, ``sign()`` and
    ``fullSign()`` return new descriptors and never modify the receiver.
    '''
    def __init__(self, permkey=None, intropoints=b'', replica=0, vers=DESC_VERSION,
                 protovers=PROTOCOL_VERSIONS, descid=None, secretid=None,
                 published=None, signature=b''):
        self.vers = vers
        self.descid = descid
        self.permkey = permkey
        self.secretid = secretid
        self.published = published
        self.protovers = list(protovers)
        self.intropoints = intropoints
        self.signature = signature
        self.replica = replica

    def finalize(self, now=None):
        '''
        Compute the publication time, secret-id-part and descriptor id.

        Args:
            now (datetime.datetime): The publication instant (defaults to now).

        Returns:
            HsDesc: A new finalized descriptor.
        '''
        if self.permkey is None:
            raise s_exc.BadState(mesg='Cannot finalize a descriptor without a permanent key.')

        if self.replica not in REPLICAS:
            raise s_exc.BadArg(mesg=f'Descriptor replica must be one of {REPLICAS}.', replica=self.replica)

        if now is None:
            now = datetime.datetime.now(tz=datetime.timezone.utc)
        now = _utc(now)

        permid = s_onion.permanentId(self.permkey)

        desc = self._copy()
        desc.published = now.replace(minute=0, second=0, microsecond=0)
        desc.secretid = secretId(permid, now, self.replica)
        desc.descid = descId(permid, desc.secretid)
        return desc

    def _copy(self):
        desc = copy.copy(self)
        desc.protovers = list(self.protovers)
        return desc

    def _dump(self, signature):

        if self.permkey is None or self.descid is None or self.secretid is None or self.published is None:
            raise s_exc.BadState(mesg='Descriptor must be finalized before it is serialized.')

        protovers = ','.join(str(v) for v in self.protovers)

        lines = [
            f'{DOC_FIELD} {s_encoding.b32enc(self.descid)}\n'.encode('utf8'),
            f'version {self.vers}\n'.encode('utf8'),
            b'permanent-key\n',
            self.permkey.pem(),
            f'secret-id-part {s_encoding.b32enc(self.secretid)}\n'.encode('utf8'),
            f'publication-time {s_tordoc.fmtTime(self.published)}\n'.encode('utf8'),
            f'protocol-versions {protovers}\n'.encode('utf8'),
        ]

        if self.intropoints:
            lines.append(b'introduction-points\n')
            lines.append(s_encoding.pemenc('MESSAGE', self.intropoints))

        lines.append(b'signature\n')
        if signature:
            lines.append(s_encoding.pemenc('SIGNATURE', signature))

        return b''.join(lines)

    def dump(self):
        '''
        Serialize the descriptor to the tor document format.
        '''
        return self._dump(self.signature)

    def body(self):
        '''
        The signed content: the serialized descriptor without a signature object.
        '''
        return self._dump(b'')

    def digest(self):
        return s_encoding.sha1(self.body())

    def sign(self, prikey):
        '''
        Sign the descriptor with the permanent (RSA) private key.

        Returns:
            HsDesc: A new descriptor carrying the signature.
        '''
        desc = self._copy()
        desc.signature = prikey.sign(self.digest())
        return desc

    def verify(self):
        '''
        Verify the descriptor signature against the permanent key.

        Returns:
            bool: True if the signature is valid.
        '''
        if not self.signature or self.permkey is None:
            return False
        return self.permkey.verify(self.digest(), self.signature)

    def onion(self):
        '''
        The v2 onion address of the service.
        '''
        if self.permkey is None:
            raise s_exc.BadState(mesg='Descriptor has no permanent key.')
        return s_onion.onionAddrV2(self.permkey)

    def fullSign(self, prikey, now=None):
        '''
        Set the permanent key from prikey, finalize and sign the descriptor.
        '''
        if not isinstance(prikey, s_rsa.PriKey):
            raise s_exc.BadArg(mesg='Rendezvous descriptors must be signed with an RSA key.')

        desc = self._copy()
        desc.permkey = prikey.publ
        return desc.finalize(now=now).sign(prikey)

    def introPoints(self):
        ipts, rest = parseIntroPoints(self.intropoints)
        return ipts

    def __repr__(self):
        descid = None
        if self.descid is not None:
            descid = s_encoding.b32enc(self.descid)
        return f'HsDesc(descid={descid}, published={self.published}, replica={self.replica})'

def _parseHsDesc(doc):

    entry = doc.reqExactlyOnce(DOC_FIELD)
    descid = s_encoding.b32dec(entry.joined())

    entry = doc.reqExactlyOnce('version')
    vers = s_tordoc.parseInt(entry.joined(), 'version')

    entry = doc.reqExactlyOnce('permanent-key')
    permkey = s_rsa.PubKey.load(s_tordoc.reqObject(entry, 'permanent-key'))

    entry = doc.reqExactlyOnce('secret-id-part')
    secretid = s_encoding.b32dec(entry.joined())

    entry = doc.reqExactlyOnce('publication-time')
    published = s_tordoc.parseTime(entry.joined(), 'publication-time')

    entry = doc.reqExactlyOnce('protocol-versions')
    protovers = [s_tordoc.parseInt(v, 'protocol-versions') for v in entry.joined().split(b',')]

    intropoints = b''
    entry = doc.reqAtMostOnce('introduction-points')
    if entry is not None:
        intropoints = s_tordoc.reqObject(entry, 'introduction-points')

    entry = doc.reqExactlyOnce('signature')
    if not entry:
        raise s_exc.MalformedInput(mesg='Descriptor has an empty signature.')
    signature = entry[-1]

    return HsDesc(permkey=permkey, intropoints=intropoints, replica=None, vers=vers,
                  protovers=protovers, descid=descid, secretid=secretid,
                  published=published, signature=signature)

def parseHsDescs(byts):
    '''
    Parse rendezvous service descriptors from a byte stream.

    Returns:
        (list, bytes): The HsDesc list and the unparsed remainder.

    Notes:
        Documents which are not rendezvous descriptors, and broken ones, are
        logged and skipped.  Parsed descriptors have ``replica`` set to None
        since the replica is not part of the document.
    '''
    docs, rest = s_tordoc.parseTorDocs(byts)

    descs = []
    for doc in docs:

        if DOC_FIELD not in doc:
            logger.warning(f'Skipping a document that is not a rendezvous service descriptor: {doc.fields()[:1]}')
            continue

        try:
            descs.append(_parseHsDesc(doc))
        except s_exc.OnionErr as e:
            logger.warning(f'Skipping broken rendezvous service descriptor: {e.get("mesg")}',
                           extra=s_logging.getLogExtra(descid=doc.first(DOC_FIELD), exc=e))

    return descs, rest

class IntroPoint:
    '''
    An introduction point entry of a rendezvous descriptor.
    '''
    def __init__(self, iden, addr, port, onionkey, servkey):
        self.iden = iden
        self.addr = addr
        self.port = port
        self.onionkey = onionkey
        self.servkey = servkey

    def dump(self):
        lines = [
            f'{INTRO_FIELD} {s_encoding.b32enc(self.iden)}\n'.encode('utf8'),
            f'ip-address {self.addr}\n'.encode('utf8'),
            f'onion-port {self.port}\n'.encode('utf8'),
            b'onion-key\n',
            self.onionkey.pem(),
            b'service-key\n',
            self.servkey.pem(),
        ]
        return b''.join(lines)

    def __eq__(self, othr):
        if not isinstance(othr, IntroPoint):
            return False
        return (self.iden, self.addr, self.port, self.onionkey, self.servkey) == \
               (othr.iden, othr.addr, othr.port, othr.onionkey, othr.servkey)

    def __repr__(self):
        return f'IntroPoint(iden={s_encoding.b32enc(self.iden)}, addr={self.addr}, port={self.port})'

def dumpIntroPoints(ipts):
    return b''.join(ipt.dump() for ipt in ipts)

def _parseIntroPoint(doc):

    iden = s_encoding.b32dec(doc.reqExactlyOnce(INTRO_FIELD).joined())
    addr = s_tordoc.parseAddr(doc.reqExactlyOnce('ip-address').joined(), 'ip-address')
    port = s_tordoc.parsePort(doc.reqExactlyOnce('onion-port').joined(), 'onion-port')

    entry = doc.reqExactlyOnce('onion-key')
    onionkey = s_rsa.PubKey.load(s_tordoc.reqObject(entry, 'onion-key'))

    entry = doc.reqExactlyOnce('service-key')
    servkey = s_rsa.PubKey.load(s_tordoc.reqObject(entry, 'service-key'))

    return IntroPoint(iden, addr, port, onionkey, servkey)

def parseIntroPoints(byts):
    '''
    Parse the (decrypted) introduction-points block of a descriptor.

    Returns:
        (list, bytes): The IntroPoint list and the unparsed remainder.
    '''
    docs, rest = s_tordoc.parseTorDocs(byts)

    ipts = []
    for doc in docs:

        if INTRO_FIELD not in doc:
            logger.warning('Skipping a document that is not an introduction point.')
            continue

        try:
            ipts.append(_parseIntroPoint(doc))
        except s_exc.OnionErr as e:
            logger.warning(f'Skipping broken introduction point: {e.get("mesg")}',
                           extra=s_logging.getLogExtra(exc=e))

    return ipts, rest
