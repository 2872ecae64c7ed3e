'''
Codec helpers for the encodings used by tor documents and onion addresses.
'''
import base64
import hashlib
import binascii

import regex

import onionkit.exc as s_exc

pemstart = b'-----BEGIN '

pemre = regex.compile(rb'-----BEGIN ([^\r\n-]+)-----\r?\n(.*?)-----END ([^\r\n-]+)-----[ \t]*(?:\r?\n|\Z)', regex.DOTALL)

def sha1(byts):
    return hashlib.sha1(byts).digest()

def sha3_256(byts):
    return hashlib.sha3_256(byts).digest()

def b32enc(byts):
    '''
    Encode bytes to lower case RFC 4648 base32 text.
    '''
    return base64.b32encode(byts).decode('utf8').lower()

def b32dec(text):
    '''
    Decode (case insensitive) base32 text.

    Raises:
        MalformedInput: If the text is not valid base32.
    '''
    if isinstance(text, bytes):
        text = text.decode('utf8', errors='replace')

    try:
        return base64.b32decode(text.upper())
    except (binascii.Error, ValueError) as e:
        raise s_exc.MalformedInput(mesg=f'Invalid base32: {e}', valu=text) from None

def b64dec(text, pad=False):
    '''
    Decode base64 text.

    Args:
        text (str): The base64 text (or bytes).
        pad (bool): Add the missing ``=`` padding before decoding.

    Raises:
        MalformedInput: If the text is not valid base64.
    '''
    if isinstance(text, str):
        text = text.encode('utf8', errors='replace')

    if pad:
        text = text + b'=' * (-len(text) % 4)

    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise s_exc.MalformedInput(mesg=f'Invalid base64: {e}') from None

def b64enc(byts, pad=True):
    text = base64.b64encode(byts).decode('utf8')
    if not pad:
        text = text.rstrip('=')
    return text

def pemenc(name, byts):
    '''
    Encode bytes as a PEM block with 64 column body lines.

    Example:

        byts = s_encoding.pemenc('SIGNATURE', sigbyts)

    Returns:
        bytes: The PEM block (including the trailing newline).
    '''
    text = base64.b64encode(byts)

    lines = [b'-----BEGIN %s-----' % name.encode('utf8')]
    for off in range(0, len(text), 64):
        lines.append(text[off:off + 64])
    lines.append(b'-----END %s-----' % name.encode('utf8'))

    return b'\n'.join(lines) + b'\n'

def pemdec(byts):
    '''
    Decode the PEM block at the start of byts.

    Returns:
        (str, bytes, bytes): The block name, the decoded payload and the remaining bytes.

    Raises:
        MalformedInput: For a truncated block, mismatched END marker or bad base64.
    '''
    if not byts.startswith(pemstart):
        raise s_exc.MalformedInput(mesg='Data does not start with a PEM block.')

    mesg = pemre.match(byts)
    if mesg is None:
        raise s_exc.MalformedInput(mesg='Truncated or unterminated PEM block.')

    name = mesg.group(1).decode('utf8')
    endname = mesg.group(3).decode('utf8')
    if name != endname:
        raise s_exc.MalformedInput(mesg='PEM END marker does not match BEGIN.', name=name, endname=endname)

    body = b''.join(mesg.group(2).split())
    try:
        payload = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise s_exc.MalformedInput(mesg=f'Invalid base64 in PEM block {name}: {e}', name=name) from None

    return name, payload, byts[mesg.end():]

def _de_base64(item, **opts):

    # transparently handle the strings/bytes issue...
    wasstr = isinstance(item, str)
    if wasstr:
        item = item.encode('utf8')

    item = b64dec(item, pad=opts.get('pad', False))

    if wasstr:
        item = item.decode('utf8')

    return item

def _en_base64(byts, **opts):
    return base64.b64encode(byts)

def _de_base32(text, **opts):
    return b32dec(text)

def _en_base32(byts, **opts):
    return b32enc(byts)

def _de_hex(text, **opts):
    try:
        return binascii.unhexlify(text)
    except (binascii.Error, ValueError) as e:
        raise s_exc.MalformedInput(mesg=f'Invalid hex: {e}') from None

def _en_hex(byts, **opts):
    return binascii.hexlify(byts).decode('utf8')

def _en_utf8(text, **opts):
    return text.encode('utf8')

def _de_utf8(byts, **opts):
    return byts.decode('utf8')

decoders = {
    'hex': _de_hex,  # type: ignore
    'utf8': _de_utf8,  # type: ignore
    'base32': _de_base32,  # type: ignore
    'base64': _de_base64,  # type: ignore
}

encoders = {
    'hex': _en_hex,  # type: ignore
    'utf8': _en_utf8,  # type: ignore
    'base32': _en_base32,  # type: ignore
    'base64': _en_base64,  # type: ignore
}

def decode(name, byts, **opts):
    '''
    Decode the given byts with the named decoder.
    If name is a comma separated list of decoders,
    loop through and do them all.

    Example:

        byts = s_encoding.decode('base32', 'nzxxiylbmfwwk3lp')

    Note: Decoder names may also be prefixed with +
          to *encode* for that name/layer.

    '''
    for name in name.split(','):

        if name.startswith('+'):
            byts = encode(name[1:], byts, **opts)
            continue

        func = decoders.get(name)
        if func is None:
            raise s_exc.NoSuchDecoder(name=name)

        byts = func(byts, **opts)

    return byts

def encode(name, item, **opts):

    for name in name.split(','):

        if name.startswith('-'):
            item = decode(name[1:], item, **opts)
            continue

        func = encoders.get(name)
        if func is None:
            raise s_exc.NoSuchEncoder(name=name)

        item = func(item, **opts)

    return item
