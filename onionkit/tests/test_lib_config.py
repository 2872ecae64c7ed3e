import argparse

import regex

import onionkit.exc as s_exc
import onionkit.common as s_common

import onionkit.lib.config as s_config
import onionkit.lib.crypto.kdf as s_kdf

import onionkit.tests.utils as s_t_utils

confdefs = {
    'onion:version': {
        'description': 'The onion address version.',
        'type': 'string',
        'default': 'current',
    },
    'onion:save': {
        'description': 'Save generated keys.',
        'type': 'boolean',
        'default': False,
    },
    'onion:nodefval': {
        'description': 'A boolean without a default.',
        'type': 'boolean',
    },
    'onion:ports': {
        'description': 'Virtual ports.',
        'type': 'array',
    },
}

class ConfTest(s_t_utils.OnionTest):

    def test_config_schema(self):

        schema = s_config.getJsSchema(s_kdf.kdfdefs, confdefs)
        self.false(schema['additionalProperties'])
        self.isin('kdf:space', schema['properties'])
        self.isin('onion:version', schema['properties'])

        # confbase takes precedence over confdefs
        schema = s_config.getJsSchema({'kdf:time': {'type': 'string'}}, s_kdf.kdfdefs)
        self.eq(schema['properties']['kdf:time'], {'type': 'string'})

        self.eq(s_config.make_envar_name('kdf:space'), 'KDF_SPACE')
        self.eq(s_config.make_envar_name('kdf:space', prefix='onionkit'), 'ONIONKIT_KDF_SPACE')

        valid = s_config.getJsValidator({'type': 'integer', 'minimum': 1})
        self.eq(valid(10), 10)
        self.true(valid is s_config.getJsValidator({'type': 'integer', 'minimum': 1}))
        with self.raises(s_exc.SchemaViolation):
            valid(0)

    def test_config_basics(self):

        conf = s_config.Config(s_config.getJsSchema(s_kdf.kdfdefs, confdefs), envar_prefixes=('onionkit', 'alt'))
        self.eq(conf.asDict(), {})

        pars = argparse.ArgumentParser('onionkit.tests.test_lib_config.basics')
        for optname, optinfo in conf.getArgParseArgs():
            pars.add_argument(optname, **optinfo)

        hmsg = regex.sub(r'\s\s+', ' ', pars.format_help())
        self.isin('--kdf-space KDF_SPACE', hmsg)
        self.isin('--kdf-time KDF_TIME', hmsg)
        self.isin('--onion-version ONION_VERSION', hmsg)
        self.isin('(default: current)', hmsg)
        self.notin('--onion-save', hmsg)
        self.notin('--onion-nodefval', hmsg)
        self.notin('Virtual ports', hmsg)

        opts = pars.parse_args(['--kdf-space', '4096', '--onion-version', 'best'])
        conf.setConfFromOpts(opts)
        self.eq(conf.asDict(), {'kdf:space': 4096, 'onion:version': 'best'})

        with self.setTstEnvars(ONIONKIT_KDF_SPACE='8192', ONIONKIT_KDF_TIME='3', ALT_ONION_PORTS='[80, 443]'):
            updates = conf.setConfFromEnvs()

        self.eq(updates, {'kdf:time': 3, 'onion:ports': [80, 443]})
        self.eq(conf.get('kdf:space'), 4096)

        self.none(conf.reqConfValid())
        self.eq(conf.asDict(), {
            'kdf:space': 4096,
            'kdf:time': 3,
            'kdf:para': 1,
            'onion:save': False,
            'onion:version': 'best',
            'onion:ports': [80, 443],
        })

        self.eq(3, conf.reqConfValu('kdf:time'))
        self.raises(s_exc.NeedConfValu, conf.reqConfValu, 'onion:nodefval')
        self.raises(s_exc.BadArg, conf.reqConfValu, 'onion:newp')

        self.len(6, conf)
        del conf['onion:ports']
        self.notin('onion:ports', conf)

        valu = repr(conf)
        self.isin('<onionkit.lib.config.Config at 0x', valu)

        with self.raises(s_exc.BadArg):
            conf['onion:newp'] = 'newp'

        with self.raises(s_exc.BadConfValu):
            conf['kdf:space'] = 1

        with self.raises(s_exc.BadConfValu):
            conf.update({'kdf:para': 'newp'})

        # schema violations for the whole config are reported as BadConfValu
        conf.conf['kdf:time'] = -1
        with self.raises(s_exc.BadConfValu):
            conf.reqConfValid()

    def test_config_file(self):

        conf = s_config.Config(s_config.getJsSchema(s_kdf.kdfdefs, {}))
        conf['kdf:time'] = 1

        with self.getTestDir() as dirn:

            path = s_common.genpath(dirn, 'kdf.yaml')
            s_common.yamlsave({'kdf:space': 2048, 'kdf:time': 5}, path)

            conf.setConfFromFile(path)
            self.eq(conf.asDict(), {'kdf:space': 2048, 'kdf:time': 1})

            # missing files are ignored
            conf.setConfFromFile(s_common.genpath(dirn, 'newp.yaml'))

            s_common.yamlsave({'kdf:newp': 1}, path)
            with self.raises(s_exc.BadArg):
                conf.setConfFromFile(path)

            s_common.yamlsave([1, 2], path)
            with self.raises(s_exc.BadConfValu):
                conf.setConfFromFile(path)
