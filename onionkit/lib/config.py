'''
JSON Schema backed configuration.

Values are checked against their property schema as they are set, and the
whole configuration (with schema defaults filled in) by ``reqConfValid()``.
Every source is applied with ``setdefault()``, so the first source to set a
value wins: apply command line options, then a YAML file, then environment
variables.
'''
import os
import copy
import json
import logging
import collections.abc as c_abc

import yaml
import fastjsonschema

import onionkit.exc as s_exc
import onionkit.common as s_common

from fastjsonschema.exceptions import JsonSchemaValueException

logger = logging.getLogger(__name__)

SCHEMA_DRAFT = 'http://json-schema.org/draft-07/schema#'

# compiled validators keyed by their canonical schema text
_JsValidators = {}  # type: ignore

# schema types which can be set from the command line
argtypes = {
    'integer': int,
    'number': float,
    'string': str,
}

def getJsSchema(confbase, confdefs):
    '''
    Build an object schema which allows only the given properties.

    Args:
        confbase (dict): Property schemas which take precedence over confdefs.
        confdefs (dict): Property schemas.

    Returns:
        dict: A JSON Schema (draft 7) dictionary.
    '''
    props = dict(confdefs)
    props.update(confbase)
    return {
        '$schema': SCHEMA_DRAFT,
        'type': 'object',
        'additionalProperties': False,
        'properties': props,
    }

def getJsValidator(schema, use_default=True):
    '''
    Get a cached fastjsonschema validator which raises SchemaViolation.

    Args:
        schema (dict): A JSON Schema object.
        use_default (bool): Fill in "default" values while validating.

    Returns:
        callable: The validator function.
    '''
    schema.setdefault('$schema', SCHEMA_DRAFT)

    key = (json.dumps(schema, sort_keys=True), use_default)
    wrap = _JsValidators.get(key)
    if wrap is not None:
        return wrap

    func = fastjsonschema.compile(schema, use_default=use_default)

    def wrap(valu):
        try:
            return func(valu)
        except JsonSchemaValueException as e:
            raise s_exc.SchemaViolation(mesg=e.message, name=e.name) from e

    _JsValidators[key] = wrap
    return wrap

def make_envar_name(key, prefix=None):
    '''
    Get the environment variable name for a config key (``kdf:time`` -> ``ONIONKIT_KDF_TIME``).
    '''
    name = key.replace(':', '_')
    if prefix:
        name = f'{prefix}_{name}'
    return name.upper()

class Config(c_abc.MutableMapping):
    '''
    A configuration mapping validated by a JSON Schema.

    Args:
        schema (dict): The object schema (see ``getJsSchema()``).
        conf (dict): Optional values to preload.
        envar_prefixes (tuple): Prefixes used by ``setConfFromEnvs()``.

    Notes:
        Default values are not present until ``reqConfValid()`` is called.
    '''
    def __init__(self, schema, conf=None, envar_prefixes=('',)):

        self.json_schema = schema
        self.envar_prefixes = envar_prefixes

        self.conf = {}
        self.validator = getJsValidator(schema)
        self._prop_validators = {name: getJsValidator(dict(prop)) for name, prop in self.props().items()}
        self._argnames = {}

        if conf is not None:
            for name, valu in conf.items():
                self[name] = valu

    def props(self):
        return self.json_schema.get('properties', {})

    def getArgParseArgs(self):
        '''
        Get the ``(name, kwargs)`` argparse arguments for the integer, number and string options.

        Returns:
            list: Tuples for ``ArgumentParser.add_argument(name, **kwargs)``.
        '''
        argdata = []

        for name, prop in self.props().items():

            typename = prop.get('type')
            if not isinstance(typename, str) or typename not in argtypes:
                continue

            helptext = prop.get('description', '')
            if (defv := prop.get('default')) is not None:
                helptext = f'{helptext} (default: {defv})'

            self._argnames[name.replace(':', '_')] = name
            argdata.append(('--' + name.replace(':', '-'), {
                'help': helptext,
                'type': argtypes[typename],
                'action': 'store',
            }))

        return argdata

    def setConfFromOpts(self, opts):
        '''
        Set values from an argparse Namespace built with ``getArgParseArgs()``.
        '''
        for argname, valu in vars(opts).items():

            if valu is None:
                continue

            name = self._argnames.get(argname)
            if name is not None:
                self.setdefault(name, valu)

    def setConfFromFile(self, path):
        '''
        Set values from a YAML file.  A missing file is ignored.
        '''
        item = s_common.yamlload(path)
        if item is None:
            return

        if not isinstance(item, dict):
            raise s_exc.BadConfValu(mesg=f'Config file {path} must contain a mapping.', path=path)

        for name, valu in item.items():
            self.setdefault(name, valu)

    def setConfFromEnvs(self):
        '''
        Set values from environment variables.

        Notes:
            Each prefix in ``envar_prefixes`` is tried in order.  The variable
            text is parsed with ``yaml.safe_load()``.  A value which is already
            set is kept, and a conflicting envar is logged.

        Returns:
            dict: The values which were set from environment variables.
        '''
        updates = {}

        for prefix in self.envar_prefixes:
            for name, envar in self.getEnvarMapping(prefix=prefix).items():

                envv = os.getenv(envar)
                if envv is None:
                    continue

                envv = yaml.safe_load(envv)

                curv = self.get(name, s_common.novalu)
                if curv is not s_common.novalu:
                    if curv != envv:
                        logger.warning(f'Config from envar [{envar}] skipped due to already being set!')
                    continue

                self[name] = envv
                updates[name] = envv
                logger.debug(f'Set config valu from envar: [{envar}]')

        return updates

    def getEnvarMapping(self, prefix=None):
        if prefix is None:
            prefix = self.envar_prefixes[0]
        return {name: make_envar_name(name, prefix=prefix) for name in self.props()}

    def reqConfValid(self):
        '''
        Validate the whole configuration and fill in schema defaults.

        Raises:
            BadConfValu: If the configuration is invalid.
        '''
        try:
            self.validator(self.conf)
        except s_exc.SchemaViolation as e:
            logger.exception('Configuration is invalid.')
            raise s_exc.BadConfValu(mesg=f'Invalid configuration found: [{e.get("mesg")}]') from None

    def reqConfValu(self, key):
        '''
        Get a configuration value which must be known to the schema and set.

        Raises:
            BadArg: If the key is not in the schema.
            NeedConfValu: If the key has no value.
        '''
        if key not in self.props():
            raise s_exc.BadArg(mesg='Required key is not present in the configuration schema.', key=key)

        if key not in self.conf:
            raise s_exc.NeedConfValu(mesg='Required key is not present in configuration data.', key=key)

        return self.conf[key]

    def reqKeyValid(self, key, value):
        '''
        Check a single value against its property schema.

        Raises:
            BadArg: If the key is not in the schema.
            BadConfValu: If the value is not valid.
        '''
        validator = self._prop_validators.get(key)
        if validator is None:
            raise s_exc.BadArg(mesg=f'Key {key} is not a valid config', key=key)

        try:
            validator(value)
        except s_exc.SchemaViolation as e:
            raise s_exc.BadConfValu(mesg=f'Invalid config for {key}, {e.get("mesg")}', name=key, value=value) from None

    def asDict(self):
        '''
        Get a deep copy of the configuration values.
        '''
        return copy.deepcopy(self.conf)

    def __repr__(self):
        return f'<{self.__class__.__module__}.{self.__class__.__name__} at {hex(id(self))} conf={self.conf}>'

    def __len__(self):
        return len(self.conf)

    def __iter__(self):
        return iter(self.conf)

    def __delitem__(self, key):
        del self.conf[key]

    def __setitem__(self, key, value):
        self.reqKeyValid(key, value)
        self.conf[key] = value

    def __getitem__(self, key):
        return self.conf[key]
