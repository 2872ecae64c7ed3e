'''
onionkit version information.
'''
# This module is imported during onionkit.__init__.  As such, we can't pull
# arbitrary modules from onionkit here.

version = (0, 3, 0)
verstring = '.'.join([str(x) for x in version])
commit = ''
