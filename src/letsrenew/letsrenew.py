#!/usr/bin/env python3

# Certificate renewal using the ACME protocol and HTTP-01 challenges
#
# Install with:
# pip3 install letsrenew


import argparse
import datetime
import json
import os
import sys

from importlib import metadata

from .account import AccountManager
from .config import Configuration, load_config
from .errors import AcmeError, ConfigurationError, ErrorCode, PrivateKeyError, WarningCode
from .output import Output, indent
from .provision import ensure_directories
from .renewal import RenewalManager
from .utils import open_file, process_running


def _version(distribution_name):
    try:
        return metadata.version(distribution_name)
    except metadata.PackageNotFoundError:
        return 'unknown'


class LetsRenew(object):

    def __init__(self, argv=None):
        script_entry = sys.argv[0]
        self.script_dir = os.path.dirname(os.path.realpath(script_entry))
        self.script_name = 'letsrenew'
        self.script_version = _version('letsrenew')

        argparser = argparse.ArgumentParser(description='ACME Certificate Renewal')
        argparser.add_argument('--version', action='version', version='%(prog)s ' + self.script_version)
        argparser.add_argument('profile_names', nargs='*', metavar='PROFILE',
                               help='Only process the named profiles')
        argparser.add_argument('-q', '--quiet',
                               action='store_true', dest='quiet', default=False,
                               help="Don't print status messages to stdout or warnings to stderr")
        argparser.add_argument('-v', '--verbose',
                               action='store_true', dest='verbose', default=False,
                               help='Print more detailed status messages to stdout')
        argparser.add_argument('-d', '--debug',
                               action='store_true', dest='debug', default=False,
                               help='Print detailed debugging information to stdout')
        argparser.add_argument('-D', '--detail',
                               action='store_true', dest='detail', default=False,
                               help='Print more detailed debugging information to stdout')
        argparser.add_argument('--color',
                               action='store_true', dest='color', default=False,
                               help='Colorize output')
        argparser.add_argument('--no-color',
                               action='store_true', dest='no_color', default=False,
                               help='Suppress colorized output')
        argparser.add_argument('-c', '--config',
                               dest='config_path', default=self.script_name, metavar='CONFIG_PATH',
                               help='Specify file path for config')
        argparser.add_argument('-R', '--renew',
                               action='store_true', dest='renew', default=False,
                               help='Renew certificates regardless of age')
        argparser.add_argument('--staging',
                               action='store_true', dest='staging', default=False,
                               help='Use the staging ACME service')
        argparser.add_argument('--register',
                               action='store_true', dest='register', default=False,
                               help='Register account only')
        argparser.add_argument('--show-config',
                               action='store_true', dest='show_config', default=False,
                               help='Display configuration settings')
        self.args = argparser.parse_args(argv)

        self.output = Output(quiet=self.args.quiet, verbose=self.args.verbose, debug=self.args.debug, detail=self.args.detail,
                             color=self.args.color, no_color=self.args.no_color)

        try:
            config, config_file_path = load_config(self.args.config_path,
                                                   ('.', os.path.join('/etc', self.script_name), self.script_dir),
                                                   self.output)
            if (self.args.staging):
                config.setdefault('settings', {})
                config['settings']['staging'] = True
            self.config = Configuration(config, config_file_path)
        except ConfigurationError as error:
            self.output.fatal(str(error), '\n', code=ErrorCode.CONFIG)

        log_file_path = os.path.join(self.config.directory('log'), self.config.file_name('log')) if (self.config.directory('log')) else None
        self.output.configure(color_output=self.config.setting('color_output'), log_level=self.config.setting('log_level'),
                              log_file_path=log_file_path)

    @property
    def exit_code(self) -> int:
        return self.output.exit_code

    def _user_agent(self):
        return '{script}/{version} acme-python/{acme_version}'.format(script=self.script_name, version=self.script_version,
                                                                      acme_version=_version('acme'))

    def show_config(self):
        self.output.info('Configuration:\n')
        self.output.status(json.dumps(self.config.as_dict(), indent=4), '\n')

    def register(self):
        try:
            AccountManager(self.config, self.output, user_agent=self._user_agent()).get_session()
        except PrivateKeyError as error:
            self.output.fatal('Unable to load account key\n', indent(error), '\n', code=ErrorCode.KEY)
        except Exception as error:
            self.output.fatal("Can't register with ACME service.\n", indent(error), '\n', code=ErrorCode.ACME)
        self.output.status('Account registered for ', self.config.email, '\n')

    def renew(self):
        for profile_name in self.args.profile_names:
            if (profile_name not in [profile.name for profile in self.config.profiles]):
                self.output.warn('Unknown profile ', profile_name, '\n', code=WarningCode.CONFIG)
        manager = RenewalManager(self.config, self.output,
                                 account_manager=AccountManager(self.config, self.output, user_agent=self._user_agent()),
                                 force=self.args.renew)
        report = manager.update_all_certificates(self.args.profile_names)
        self.output.status(len(report.renewed), ' renewed, ', len(report.skipped), ' skipped, ', len(report.failed), ' failed\n')
        return report

    def run(self):
        self.output.log('\n', self.script_name, ' executed at ', str(datetime.datetime.now()), '\n')
        if (self.args.show_config):
            self.show_config()
            return None
        pid_file_path = os.path.join(self.config.directory('pid'), self.script_name + '.pid') if (self.config.directory('pid')) else None
        if (pid_file_path):
            if (process_running(pid_file_path)):
                self.output.fatal('Client already running\n')
            with open_file(pid_file_path, mode='w') as pid_file:
                pid_file.write(str(os.getpid()))
        try:
            ensure_directories(self.config, self.output)
            if (self.args.register):
                self.register()
                return None
            return self.renew()
        finally:
            if (pid_file_path and os.path.isfile(pid_file_path)):
                os.remove(pid_file_path)


def run(argv=None) -> int:
    try:
        manager = LetsRenew(argv)
    except AcmeError:
        return ErrorCode.CONFIG.value
    try:
        manager.run()
    except AcmeError:
        pass
    except Exception as error:
        manager.output.error('Unexpected error\n', indent(error), '\n', code=ErrorCode.EXCEPTION)
    return manager.exit_code


if __name__ == '__main__':      # called from the command line
    sys.exit(run())
