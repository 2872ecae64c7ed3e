'''
Parser for the tor directory document format.

Each record is a ``keyword arg1 arg2 ...`` line, optionally followed by a PEM
block whose decoded payload becomes one more argument of that record::

    onion-key
    -----BEGIN RSA PUBLIC KEY-----
    ...
    -----END RSA PUBLIC KEY-----

A stream holds several documents.  The keyword of the first record is the
key field and every later record with that keyword opens a new document.
Parsing is purely syntactic, field semantics belong to the descriptor parsers.
'''
import logging
import datetime
import ipaddress

import onionkit.exc as s_exc

import onionkit.lib.const as s_const
import onionkit.lib.logging as s_logging
import onionkit.lib.encoding as s_encoding

logger = logging.getLogger(__name__)

class TorEntry(list):
    '''
    The ordered byte string arguments of one record.
    '''
    def joined(self):
        return b' '.join(self)

class TorDocument:
    '''
    An ordered multimap of field name to a list of TorEntry.
    '''
    def __init__(self):
        self._fields = {}
        self._items = []

    def add(self, field, entry):
        self._fields.setdefault(field, []).append(entry)
        self._items.append((field, entry))

    def get(self, field):
        return list(self._fields.get(field, ()))

    def fields(self):
        '''
        Field names in the order they were first seen.
        '''
        return list(self._fields.keys())

    def items(self):
        '''
        Every (field, entry) tuple in encounter order.
        '''
        return list(self._items)

    def first(self, field):
        '''
        Get the joined first entry for a field, or None.
        '''
        entries = self._fields.get(field)
        if not entries:
            return None
        return entries[0].joined()

    def reqExactlyOnce(self, field):
        entries = self._fields.get(field, ())
        if len(entries) != 1:
            raise s_exc.FieldConstraintViolation(mesg=f'Field {field} must appear exactly once.',
                                                 field=field, count=len(entries))
        return entries[0]

    def reqAtMostOnce(self, field):
        entries = self._fields.get(field, ())
        if len(entries) > 1:
            raise s_exc.FieldConstraintViolation(mesg=f'Field {field} must appear at most once.',
                                                 field=field, count=len(entries))
        if not entries:
            return None
        return entries[0]

    def __contains__(self, field):
        return field in self._fields

    def __len__(self):
        return len(self._items)

    def __repr__(self):
        return f'TorDocument(fields={self.fields()})'

def parseNextField(byts):
    '''
    Tokenize the next record.

    Returns:
        (str, TorEntry, bytes): The keyword, its arguments and the remaining bytes,
                                or None if no complete record line remains.

    Raises:
        MalformedInput: If a PEM block following the record is malformed.
    '''
    line, sepr, rest = byts.partition(b'\n')
    if not sepr:
        return None

    args = line.split(b' ')
    field = args[0].decode('utf8', errors='replace')
    entry = TorEntry(args[1:])

    if rest.startswith(s_encoding.pemstart):
        name, payload, rest = s_encoding.pemdec(rest)
        entry.append(payload)

    return field, entry, rest

def isDocStart(keyfield, field):
    '''
    Check whether a record opens a new document.

    Args:
        keyfield (str): The keyword of the first record in the stream (None before any record).
        field (str): The keyword of the current record.
    '''
    return keyfield is None or field == keyfield

def parseTorDocs(byts):
    '''
    Parse a byte stream into tor documents.

    Returns:
        (list, bytes): The TorDocument list and the unparsed remainder.

    Notes:
        Parsing stops silently when no further record line can be tokenized.
        A malformed PEM block is logged and stops parsing; the record it
        belongs to is left in the remainder.
    '''
    docs = []
    doc = None
    keyfield = None

    while True:

        try:
            retn = parseNextField(byts)
        except s_exc.MalformedInput as e:
            logger.warning(f'Stopped parsing tor documents at a malformed PEM block: {e.get("mesg")}',
                           extra=s_logging.getLogExtra(docs=len(docs), exc=e))
            break

        if retn is None:
            break

        field, entry, byts = retn

        if isDocStart(keyfield, field):

            if keyfield is None:
                keyfield = field

            if doc is not None:
                docs.append(doc)

            doc = TorDocument()

        doc.add(field, entry)

    if doc is not None:
        docs.append(doc)

    return docs, byts

# field value helpers shared by the descriptor parsers

def parseInt(byts, field, minv=0, maxv=None):
    try:
        valu = int(byts.decode('utf8'), 10)
    except (UnicodeDecodeError, ValueError):
        raise s_exc.MalformedInput(mesg=f'Invalid integer in field {field}: {byts!r}', field=field) from None

    if valu < minv or (maxv is not None and valu > maxv):
        raise s_exc.MalformedInput(mesg=f'Integer out of range in field {field}: {valu}', field=field)

    return valu

def parsePort(byts, field):
    return parseInt(byts, field, maxv=0xffff)

def parseAddr(byts, field):
    try:
        return ipaddress.ip_address(byts.decode('utf8'))
    except (UnicodeDecodeError, ValueError):
        raise s_exc.MalformedInput(mesg=f'Invalid IP address in field {field}: {byts!r}', field=field) from None

def parseTime(byts, field):
    try:
        valu = datetime.datetime.strptime(byts.decode('utf8'), s_const.TOR_TIME_FORMAT)
    except (UnicodeDecodeError, ValueError):
        raise s_exc.MalformedInput(mesg=f'Invalid time in field {field}: {byts!r}', field=field) from None
    return valu.replace(tzinfo=datetime.timezone.utc)

def fmtTime(valu):
    return valu.astimezone(datetime.timezone.utc).strftime(s_const.TOR_TIME_FORMAT)

def reqArgs(entry, field, count):
    if len(entry) != count:
        raise s_exc.MalformedInput(mesg=f'Field {field} takes {count} arguments, got {len(entry)}.',
                                   field=field, count=len(entry))
    return entry

def reqObject(entry, field):
    '''
    Get the PEM payload (the last argument) of a record.
    '''
    if not entry:
        raise s_exc.MalformedInput(mesg=f'Field {field} is missing its object.', field=field)
    return entry[-1]
