'''
Small helpers shared across onionkit: hex, paths, YAML files and error info.
'''
import io
import os
import sys
import typing
import logging
import binascii
import traceback

import yaml

import onionkit.exc as s_exc

logger = logging.getLogger(__name__)

class NoValu:
    pass

# sentinel for "not set" where None is a valid value
novalu = NoValu()

def ehex(byts):
    '''
    Encode bytes as lower case hex text.
    '''
    return binascii.hexlify(byts).decode('utf8')

def uhex(text):
    '''
    Decode hex text to bytes.
    '''
    return binascii.unhexlify(text)

def genpath(*paths):
    '''
    Join path elements and expand ``~`` and environment variables into an absolute path.
    '''
    path = os.path.expandvars(os.path.expanduser(os.path.join(*paths)))
    return os.path.abspath(path)

def reqpath(*paths):
    '''
    Like genpath(), but raise NoSuchFile if the path is not an existing file.
    '''
    path = genpath(*paths)
    if not os.path.isfile(path):
        raise s_exc.NoSuchFile(mesg=f'No such path {path}', path=path)
    return path

def reqbytes(*paths):
    with io.open(reqpath(*paths), 'rb') as fd:
        return fd.read()

def genfile(*paths) -> typing.BinaryIO:
    '''
    Open a file for read/write at the start, creating it and its parent directories if needed.

    Notes:
        Existing contents are kept; call ``fd.truncate(0)`` to replace them.
    '''
    path = genpath(*paths)
    os.makedirs(os.path.dirname(path), exist_ok=True)

    mode = 'r+b' if os.path.isfile(path) else 'w+b'
    return io.open(path, mode)

def yamlload(*paths):
    '''
    Load a YAML file, or return None if it does not exist.
    '''
    path = genpath(*paths)
    if not os.path.isfile(path):
        return None

    with io.open(path, 'rb') as fd:
        return yaml.load(fd, yaml.SafeLoader)

def yamlsave(obj, *paths):
    with genfile(*paths) as fd:
        fd.truncate(0)
        yaml.dump(obj, stream=fd, Dumper=yaml.SafeDumper, encoding='utf8',
                  allow_unicode=True, default_flow_style=False)

def excinfo(e):
    '''
    Get the err, errmsg and errinfo fields (and the raising file and line) for an exception.
    '''
    ret = {
        'err': e.__class__.__name__,
        'errmsg': str(e),
    }

    if e.__traceback__ is not None:
        frame = traceback.extract_tb(e.__traceback__)[-1]
        ret['errfile'] = frame.filename
        ret['errline'] = frame.lineno

    if isinstance(e, s_exc.OnionErr):
        ret['errinfo'] = e.errinfo

    return ret

def err(e):
    '''
    Get a pickleable (name, info) tuple for the exception being handled.
    '''
    info = {}

    tbinfo = traceback.extract_tb(sys.exc_info()[2])
    if tbinfo:
        frame = tbinfo[-1]
        info.update({
            'efile': os.path.basename(frame.filename),
            'eline': frame.lineno,
            'esrc': frame.line,
            'ename': frame.name,
        })

    if isinstance(e, s_exc.OnionErr):
        info.update(e.items())
    else:
        info['mesg'] = str(e)

    return (e.__class__.__name__, info)
