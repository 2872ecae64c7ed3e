'''
Relay (server) descriptors, ``@type server-descriptor 1.0``.
'''
import logging
import collections

import onionkit.exc as s_exc

import onionkit.lib.tordoc as s_tordoc
import onionkit.lib.torcert as s_torcert
import onionkit.lib.logging as s_logging
import onionkit.lib.encoding as s_encoding
import onionkit.lib.crypto.rsa as s_rsa

logger = logging.getLogger(__name__)

DOC_TYPE = b'server-descriptor 1.0'

NTOR_KEY_SIZE = 32
MASTER_KEY_SIZE = 32
ED25519_SIG_SIZE = 64

Bandwidth = collections.namedtuple('Bandwidth', ('average', 'burst', 'observed'))
Platform = collections.namedtuple('Platform', ('softname', 'softvers', 'name'))
Ipv6Policy = collections.namedtuple('Ipv6Policy', ('accept', 'ports'))

def onionKeyCrosscert(onionkey, signkey, masterkey=None):
    '''
    Build an onion-key-crosscert.

    Args:
        onionkey (onionkit.lib.crypto.rsa.PriKey): The relay onion key.
        signkey (onionkit.lib.crypto.rsa.PubKey): The relay identity (signing) key.
        masterkey (bytes): The Ed25519 master key (zeros when the relay has none).

    Returns:
        bytes: A raw PKCS#1 v1.5 signature over ``sha1(DER(signkey)) || masterkey``.
    '''
    return onionkey.sign(_crossData(signkey, masterkey))

def _crossData(signkey, masterkey):
    if masterkey is None:
        masterkey = b'\x00' * MASTER_KEY_SIZE
    return s_encoding.sha1(signkey.dump()) + masterkey

class RelayDesc:
    '''
    A relay server descriptor.
    '''
    def __init__(self):

        self.nickname = None
        self.address = None
        self.orport = None
        self.socksport = None
        self.dirport = None
        self.oraddrs = []

        self.idcert = None
        self.masterkey = None
        self.bandwidth = None
        self.platform = None
        self.published = None
        self.fingerprint = None
        self.hibernating = False
        self.uptime = None
        self.extrainfo = None

        self.onionkey = None
        self.onioncross = None
        self.signkey = None

        self.hsdirvers = []
        self.contact = None
        self.ntorkey = None
        self.ntorcross = None

        self.policy = []
        self.ipv6policy = None
        self.family = []

        self.cachesextra = False
        self.singlehop = False

        self.routersiged = None
        self.routersig = None

    def dump(self):
        '''
        Serialize the descriptor to the tor document format.
        '''
        lines = []

        def addline(*args):
            lines.append(' '.join(str(a) for a in args).encode('utf8') + b'\n')

        addline('router', self.nickname, self.address, self.orport, self.socksport, self.dirport)

        if self.idcert is not None:
            addline('identity-ed25519')
            lines.append(self.idcert.pem())

        if self.masterkey is not None:
            addline('master-key-ed25519', s_encoding.b64enc(self.masterkey, pad=False))

        for addr, port in self.oraddrs[1:]:
            if addr.version == 6:
                addline('or-address', f'[{addr}]:{port}')
            else:
                addline('or-address', f'{addr}:{port}')

        if self.platform is not None:
            addline('platform', self.platform.softname, self.platform.softvers, 'on', self.platform.name)

        addline('published', s_tordoc.fmtTime(self.published))

        if self.fingerprint is not None:
            addline('fingerprint', *[self.fingerprint[i:i + 4] for i in range(0, len(self.fingerprint), 4)])

        if self.hibernating:
            addline('hibernating', 1)

        if self.uptime is not None:
            addline('uptime', self.uptime)

        addline('bandwidth', *self.bandwidth)

        if self.extrainfo is not None:
            addline('extra-info-digest', self.extrainfo)

        addline('onion-key')
        lines.append(self.onionkey.pem())

        addline('signing-key')
        lines.append(self.signkey.pem())

        if self.onioncross is not None:
            addline('onion-key-crosscert')
            lines.append(s_encoding.pemenc('CROSSCERT', self.onioncross))

        if self.ntorcross is not None:
            addline('ntor-onion-key-crosscert', int(self.ntorcross.pubkeysign))
            lines.append(self.ntorcross.pem())

        if self.hsdirvers:
            if self.hsdirvers == [2]:
                addline('hidden-service-dir')
            else:
                addline('hidden-service-dir', *self.hsdirvers)

        if self.contact is not None:
            addline('contact', self.contact)

        if self.ntorkey is not None:
            addline('ntor-onion-key', s_encoding.b64enc(self.ntorkey))

        if self.family:
            addline('family', *self.family)

        if self.cachesextra:
            addline('caches-extra-info')

        if self.singlehop:
            addline('allow-single-hop-exits')

        for action, rule in self.policy:
            addline(action, rule)

        if self.ipv6policy is not None:
            action = 'accept' if self.ipv6policy.accept else 'reject'
            addline('ipv6-policy', action, ','.join(self.ipv6policy.ports))

        if self.routersiged is not None:
            addline('router-sig-ed25519', s_encoding.b64enc(self.routersiged, pad=False))

        addline('router-signature')
        lines.append(s_encoding.pemenc('SIGNATURE', self.routersig))

        return b''.join(lines)

    def __repr__(self):
        return f'RelayDesc(nickname={self.nickname}, address={self.address}, fingerprint={self.fingerprint})'

def isRelayDoc(doc):
    '''
    Check whether a document is a server descriptor.

    Documents with an ``@type`` annotation must be ``server-descriptor 1.0``.
    Documents without one are accepted when they contain a router line.
    '''
    if '@type' in doc:
        return doc.first('@type') == DOC_TYPE
    return 'router' in doc

def _parseRouter(desc, doc):
    entry = s_tordoc.reqArgs(doc.reqExactlyOnce('router'), 'router', 5)
    desc.nickname = entry[0].decode('utf8', errors='replace')
    desc.address = s_tordoc.parseAddr(entry[1], 'router')
    desc.orport = s_tordoc.parsePort(entry[2], 'router')
    desc.socksport = s_tordoc.parsePort(entry[3], 'router')
    desc.dirport = s_tordoc.parsePort(entry[4], 'router')
    desc.oraddrs.append((desc.address, desc.orport))

def _parseIdentity(desc, doc):

    entry = doc.reqAtMostOnce('identity-ed25519')
    if entry is not None:
        cert = s_torcert.Certificate.decode(s_tordoc.reqObject(entry, 'identity-ed25519'))
        if cert.signingKey() is not None and not cert.verify():
            raise s_exc.VerificationFailure(mesg='Invalid identity-ed25519 certificate signature.')
        desc.idcert = cert

    entry = doc.reqAtMostOnce('master-key-ed25519')
    if entry is not None:

        masterkey = s_encoding.b64dec(entry.joined(), pad=True)
        if len(masterkey) != MASTER_KEY_SIZE:
            raise s_exc.MalformedInput(mesg='master-key-ed25519 must be 32 bytes.', size=len(masterkey))

        if desc.idcert is not None:
            ext = desc.idcert.exts.get(s_torcert.EXT_SIGNED_WITH_KEY)
            if ext is not None and ext.data != masterkey:
                raise s_exc.VerificationFailure(mesg='master-key-ed25519 does not match the identity certificate.')

        desc.masterkey = masterkey

def _parseBandwidth(desc, doc):
    entry = s_tordoc.reqArgs(doc.reqExactlyOnce('bandwidth'), 'bandwidth', 3)
    desc.bandwidth = Bandwidth(*[s_tordoc.parseInt(v, 'bandwidth') for v in entry])

def _parsePlatform(desc, doc):

    entry = doc.reqAtMostOnce('platform')
    if entry is None:
        return

    onidx = [i for i, word in enumerate(entry) if word == b'on']
    if len(onidx) != 1:
        raise s_exc.MalformedInput(mesg='Platform must contain exactly one " on ".', count=len(onidx))

    indx = onidx[0]
    if indx == 0:
        raise s_exc.MalformedInput(mesg='Platform has no software version before " on ".')

    desc.platform = Platform(b' '.join(entry[:indx - 1]).decode('utf8', errors='replace'),
                             entry[indx - 1].decode('utf8', errors='replace'),
                             b' '.join(entry[indx + 1:]).decode('utf8', errors='replace'))

def _parseStatus(desc, doc):

    entry = doc.reqExactlyOnce('published')
    desc.published = s_tordoc.parseTime(entry.joined(), 'published')

    entry = doc.reqAtMostOnce('fingerprint')
    if entry is not None:
        desc.fingerprint = entry.joined().replace(b' ', b'').decode('utf8', errors='replace')

    entry = doc.reqAtMostOnce('hibernating')
    if entry is not None:
        valu = entry.joined()
        if valu not in (b'0', b'1'):
            raise s_exc.MalformedInput(mesg=f'Invalid hibernating value: {valu!r}')
        desc.hibernating = valu == b'1'

    entry = doc.reqAtMostOnce('uptime')
    if entry is not None:
        desc.uptime = s_tordoc.parseInt(entry.joined(), 'uptime')

    entry = doc.reqAtMostOnce('extra-info-digest')
    if entry is not None:
        if not entry:
            raise s_exc.MalformedInput(mesg='extra-info-digest has no digest.')
        # only the first (sha1) digest is kept
        desc.extrainfo = entry[0].decode('utf8', errors='replace')

def _parseKeys(desc, doc):

    entry = doc.reqExactlyOnce('onion-key')
    desc.onionkey = s_rsa.PubKey.load(s_tordoc.reqObject(entry, 'onion-key'))

    entry = doc.reqExactlyOnce('signing-key')
    desc.signkey = s_rsa.PubKey.load(s_tordoc.reqObject(entry, 'signing-key'))

    entry = doc.reqAtMostOnce('onion-key-crosscert')
    if entry is None:
        if desc.idcert is not None:
            raise s_exc.FieldConstraintViolation(mesg='onion-key-crosscert is required with identity-ed25519.',
                                                 field='onion-key-crosscert')
        return

    crosscert = s_tordoc.reqObject(entry, 'onion-key-crosscert')
    if not desc.onionkey.verify(_crossData(desc.signkey, desc.masterkey), crosscert):
        raise s_exc.VerificationFailure(mesg='Invalid onion-key-crosscert.')

    desc.onioncross = crosscert

def _parseHsDir(desc, doc):

    entry = doc.reqAtMostOnce('hidden-service-dir')
    if entry is None:
        return

    if not entry:
        desc.hsdirvers = [2]
        return

    desc.hsdirvers = [s_tordoc.parseInt(v, 'hidden-service-dir', maxv=0xff) for v in entry]

def _parseContact(desc, doc):
    entry = doc.reqAtMostOnce('contact')
    if entry is not None:
        desc.contact = entry.joined().decode('utf8', errors='replace')

def _parseNtor(desc, doc):

    entry = doc.reqAtMostOnce('ntor-onion-key')
    if entry is not None:
        ntorkey = s_encoding.b64dec(entry.joined(), pad=True)
        if len(ntorkey) != NTOR_KEY_SIZE:
            raise s_exc.MalformedInput(mesg='ntor-onion-key must be 32 bytes.', size=len(ntorkey))
        desc.ntorkey = ntorkey

    elif desc.idcert is not None:
        raise s_exc.FieldConstraintViolation(mesg='ntor-onion-key is required with identity-ed25519.',
                                             field='ntor-onion-key')

    entry = doc.reqAtMostOnce('ntor-onion-key-crosscert')
    if entry is not None:

        entry = s_tordoc.reqArgs(entry, 'ntor-onion-key-crosscert', 2)
        if entry[0] not in (b'0', b'1'):
            raise s_exc.MalformedInput(mesg=f'Invalid ntor-onion-key-crosscert sign bit: {entry[0]!r}')

        cert = s_torcert.Certificate.decode(entry[1])
        cert.pubkeysign = entry[0] == b'1'
        desc.ntorcross = cert

    elif desc.idcert is not None:
        raise s_exc.FieldConstraintViolation(mesg='ntor-onion-key-crosscert is required with identity-ed25519.',
                                             field='ntor-onion-key-crosscert')

def _parsePolicy(desc, doc):

    for field, entry in doc.items():
        if field in ('accept', 'reject'):
            desc.policy.append((field, entry.joined().decode('utf8', errors='replace')))

    entry = doc.reqAtMostOnce('ipv6-policy')
    if entry is not None:

        if not entry or entry[0] not in (b'accept', b'reject'):
            raise s_exc.MalformedInput(mesg='ipv6-policy must start with accept or reject.')

        ports = [p.decode('utf8', errors='replace') for arg in entry[1:] for p in arg.split(b',') if p]
        desc.ipv6policy = Ipv6Policy(entry[0] == b'accept', ports)

    entry = doc.reqAtMostOnce('family')
    if entry is not None:
        desc.family = [name.decode('utf8', errors='replace') for name in entry]

def _parseSignatures(desc, doc):

    entry = doc.reqAtMostOnce('router-sig-ed25519')
    if entry is not None:
        sig = s_encoding.b64dec(entry.joined(), pad=True)
        if len(sig) != ED25519_SIG_SIZE:
            raise s_exc.MalformedInput(mesg='router-sig-ed25519 must be 64 bytes.', size=len(sig))
        desc.routersiged = sig

    elif desc.idcert is not None:
        raise s_exc.FieldConstraintViolation(mesg='router-sig-ed25519 is required with identity-ed25519.',
                                             field='router-sig-ed25519')

    entry = doc.reqExactlyOnce('router-signature')
    desc.routersig = s_tordoc.reqObject(entry, 'router-signature')

def _parseFlags(desc, doc):

    entry = doc.reqAtMostOnce('caches-extra-info')
    if entry is not None:
        s_tordoc.reqArgs(entry, 'caches-extra-info', 0)
        desc.cachesextra = True

    entry = doc.reqAtMostOnce('allow-single-hop-exits')
    if entry is not None:
        s_tordoc.reqArgs(entry, 'allow-single-hop-exits', 0)
        desc.singlehop = True

def _parseOrAddrs(desc, doc):

    for entry in doc.get('or-address'):

        if not entry:
            raise s_exc.MalformedInput(mesg='or-address has no address.')

        host, sepr, port = entry[0].rpartition(b':')
        if not sepr:
            raise s_exc.MalformedInput(mesg=f'Invalid or-address: {entry[0]!r}')

        if host.startswith(b'[') and host.endswith(b']'):
            host = host[1:-1]

        desc.oraddrs.append((s_tordoc.parseAddr(host, 'or-address'), s_tordoc.parsePort(port, 'or-address')))

# order matters: later checks rely on the keys parsed by earlier ones
fieldparsers = (
    _parseRouter,
    _parseIdentity,
    _parseBandwidth,
    _parsePlatform,
    _parseStatus,
    _parseKeys,
    _parseHsDir,
    _parseContact,
    _parseNtor,
    _parsePolicy,
    _parseSignatures,
    _parseFlags,
    _parseOrAddrs,
)

def parseRelayDesc(doc):
    '''
    Build a RelayDesc from a parsed TorDocument.

    Raises:
        FieldConstraintViolation, MalformedInput, VerificationFailure
    '''
    desc = RelayDesc()
    for func in fieldparsers:
        func(desc, doc)
    return desc

def parseRelayDescs(byts):
    '''
    Parse relay server descriptors from a byte stream.

    Returns:
        (list, bytes): The RelayDesc list and the unparsed remainder.

    Notes:
        A broken document is logged and skipped, parsing continues with the next one.
    '''
    docs, rest = s_tordoc.parseTorDocs(byts)

    descs = []
    for doc in docs:

        if not isRelayDoc(doc):
            logger.warning(f'Skipping a document that is not a {DOC_TYPE.decode()}: {doc.fields()[:1]}')
            continue

        try:
            descs.append(parseRelayDesc(doc))
        except s_exc.OnionErr as e:
            logger.warning(f'Skipping broken relay descriptor: {e.get("mesg")}',
                           extra=s_logging.getLogExtra(router=doc.first('router'), exc=e))

    return descs, rest
