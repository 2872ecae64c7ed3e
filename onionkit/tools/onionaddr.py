import os
import sys
import asyncio
import logging
import argparse

import onionkit.exc as s_exc
import onionkit.common as s_common

import onionkit.lib.coro as s_coro
import onionkit.lib.const as s_const
import onionkit.lib.onion as s_onion
import onionkit.lib.config as s_config
import onionkit.lib.output as s_output
import onionkit.lib.logging as s_logging
import onionkit.lib.crypto.kdf as s_kdf

logger = logging.getLogger(__name__)

descr = '''
Derive or check tor onion service addresses.

Examples:

    # derive a v3 onion address (and key) from a passphrase in an environment variable
    python -m onionkit.tools.onionaddr --passphrase-env ONION_PASSPHRASE --version 3 --save onion.key

    # print the address for an existing key file
    python -m onionkit.tools.onionaddr --keyfile /var/lib/tor/hs/private_key

    # check an address
    python -m onionkit.tools.onionaddr --check duskgytldkxiuqc6.onion
'''

def getArgParser(kconf):

    pars = argparse.ArgumentParser(prog='onionkit.tools.onionaddr', description=descr,
                                   formatter_class=argparse.RawDescriptionHelpFormatter)

    srcs = pars.add_mutually_exclusive_group(required=True)
    srcs.add_argument('--passphrase-env', help='Derive the key from the passphrase in this environment variable.')
    srcs.add_argument('--passphrase-file', help='Derive the key from the passphrase in this file.')
    srcs.add_argument('--keyfile', help='Print the onion address for a PEM key file.')
    srcs.add_argument('--check', help='Check whether an onion address is valid.')

    pars.add_argument('--version', default='current', choices=tuple(s_onion.keygens.keys()),
                      help='The onion address version to derive (default: current).')
    pars.add_argument('--save', help='Save the derived private key to this path.')
    pars.add_argument('--config', help='A YAML file with kdf:space, kdf:time and kdf:para values.')
    pars.add_argument('--log-level', default='WARNING', choices=list(s_const.LOG_LEVEL_CHOICES.keys()),
                      help='Specify the log level.', type=str.upper)

    for name, kwargs in kconf.getArgParseArgs():
        pars.add_argument(name, **kwargs)

    return pars

def getPassphrase(opts):

    if opts.passphrase_env is not None:
        valu = os.getenv(opts.passphrase_env)
        if valu is None:
            raise s_exc.NeedConfValu(mesg=f'Environment variable {opts.passphrase_env} is not set.',
                                     name=opts.passphrase_env)
        return valu.encode('utf8')

    byts = s_common.reqbytes(opts.passphrase_file)
    return byts.rstrip(b'\r\n')

def checkAddr(addr, outp):

    text = addr.strip().lower()
    if text.endswith('.onion'):
        text = text[:-6]

    if s_onion.isOnionAddrV3(text):
        outp.printf(f'{text}.onion is a valid v3 onion address.')
        return 0

    if s_onion.isOnionAddrV2(text):
        outp.printf(f'{text}.onion is a valid v2 onion address.')
        return 0

    outp.printf(f'{addr} is not a valid onion address.')
    return 1

async def main(argv, outp=s_output.stdout):

    kconf = s_config.Config(s_config.getJsSchema(s_kdf.kdfdefs, {}))

    pars = getArgParser(kconf)
    opts = pars.parse_args(argv)

    s_logging.setup(level=opts.log_level)

    if opts.check is not None:
        return checkAddr(opts.check, outp)

    try:

        if opts.keyfile is not None:
            prik = s_onion.loadOnionKeyFile(opts.keyfile)

        else:
            # command line values take precedence over the config file
            kconf.setConfFromOpts(opts)
            if opts.config is not None:
                kconf.setConfFromFile(opts.config)

            passwd = getPassphrase(opts)
            rand = await s_kdf.keystream(passwd, s_kdf.KEYGEN_PERSON, conf=kconf.asDict())
            prik = await s_coro.executor(s_onion.genOnionKey, rand, opts.version)

        outp.printf(f'{s_onion.onionAddr(prik)}.onion')

        if opts.save is not None:
            s_onion.saveOnionKey(prik, opts.save)
            outp.printf(f'Saved onion key to {s_common.genpath(opts.save)}')

    except s_exc.OnionErr as e:
        mesg = e.get('mesg', str(e))
        outp.printf(f'ERROR: {mesg}')
        return 1

    return 0

if __name__ == '__main__':  # pragma: no cover
    sys.exit(asyncio.run(main(sys.argv[1:])))
