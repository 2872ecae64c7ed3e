'''
Onion service identities, Tor directory documents and passphrase derived keys.
'''

import sys
if (sys.version_info.major, sys.version_info.minor) < (3, 8):  # pragma: no cover
    raise Exception('onionkit is not supported on Python versions < 3.8')

from onionkit.lib.version import version, verstring
