import sys

from .errors import AcmeError, ErrorCode, WarningCode
from .utils import open_file


LOG_LEVELS = ('none', 'normal', 'verbose', 'debug', 'detail')

COLOR_CODES = {
    'black': 30,
    'red': 31,
    'green': 32,
    'yellow': 33,
    'blue': 34,
    'magenta': 35,
    'cyan': 36,
    'light gray': 37,
    'dark gray': 90,
    'light red': 91,
    'light green': 92,
    'light yellow': 93,
    'light blue': 94,
    'light magenta': 95,
    'light cyan': 96,
    'white': 97
}

STYLE_CODES = {
    'normal': 0,
    'bold': 1,
    'bright': 1,
    'dim': 2,
    'underline': 4,
    'underlined': 4,
    'blink': 5,
    'reverse': 7,
    'invert': 7,
    'hidden': 8
}


def message(*args) -> str:
    text = ''
    for arg in args:
        text += str(arg, 'utf-8', 'replace') if isinstance(arg, bytes) else str(arg)
    return text


def indent(*args) -> str:
    return '\n'.join([('    ' + line) for line in message(*args).split('\n')])


class Output(object):
    """Console and log file reporting.

    Status messages always go to stdout unless quiet, ``info``, ``debug`` and
    ``detail`` messages only with the matching verbosity flag. Warnings and
    errors go to stderr. Each message is also appended to the log file when
    the configured ``log_level`` includes it.
    """

    def __init__(self, *, quiet=False, verbose=False, debug=False, detail=False,
                 color=False, no_color=False, color_output=True, log_level=None, log_file_path=None,
                 stdout=None, stderr=None):
        self.quiet = quiet
        self.verbose = verbose
        self.debug_output = debug
        self.detail_output = detail
        self.color = color
        self.no_color = no_color
        self.color_output = color_output
        self.log_level = log_level
        self.log_file_path = log_file_path
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        self.error_code = ErrorCode.NONE
        self.warning_code = WarningCode.NONE

    def configure(self, *, color_output=None, log_level=None, log_file_path=None):
        if (color_output is not None):
            self.color_output = color_output
        if (log_level is not None):
            self.log_level = log_level
        if (log_file_path is not None):
            self.log_file_path = log_file_path

    @property
    def exit_code(self) -> int:
        if (ErrorCode.NONE != self.error_code):
            return self.error_code.value
        return 0

    def _colorize(self, stream, color, style, text):
        if (stream.isatty() and (self.color or self.color_output) and (not self.no_color)):
            stream.write('\033[{style};{color}m{message}\033[0m'.format(color=COLOR_CODES[color], style=STYLE_CODES[style], message=text))
        else:
            stream.write(text)

    def status(self, *args):
        if (not self.quiet):
            self.stdout.write(message(*args))
        if (self.log_level in ['normal', 'verbose', 'debug', 'detail']):
            self.log(*args)

    def info(self, *args, color='yellow', style='normal'):
        if ((self.verbose or self.debug_output or self.detail_output) and not self.quiet):
            self._colorize(self.stdout, color, style, message(*args))
        if (self.log_level in ['verbose', 'debug', 'detail']):
            self.log(*args)

    def debug(self, *args, color='dark gray', style='normal'):
        if ((self.debug_output or self.detail_output) and not self.quiet):
            self._colorize(self.stdout, color, style, message(*args))
        if (self.log_level in ['debug', 'detail']):
            self.log(*args)

    def detail(self, *args, color='light gray', style='normal'):
        if (self.detail_output and not self.quiet):
            self._colorize(self.stdout, color, style, message(*args))
        if (self.log_level == 'detail'):
            self.log(*args)

    def warn(self, *args, code: WarningCode = None, color='red', style='normal'):
        self.warning_code = code if (code is not None) else WarningCode.GENERAL
        if (not self.quiet):
            self._colorize(self.stderr, color, style, message(*args))
        if (self.log_level in ['normal', 'verbose', 'debug', 'detail']):
            self.log(*args)

    def error(self, *args, code: ErrorCode = None, color='red', style='bold'):
        self.error_code = code if (code is not None) else ErrorCode.GENERAL
        text = message(*args)
        self._colorize(self.stderr, color, style, text)
        self.log(text)

    def fatal(self, *args, code: ErrorCode = None, color='red', style='bold'):
        self.error_code = code if (code is not None) else ErrorCode.FATAL
        text = message(*args)
        self._colorize(self.stderr, color, style, text)
        self.log(text)
        raise AcmeError(text)

    def log(self, *args):
        if (self.log_file_path and self.log_level and (self.log_level != 'none')):
            try:
                with open_file(self.log_file_path, mode='a+', chmod=0o640) as log_file:
                    log_file.write(message(*args))
            except Exception:
                self.stderr.write('Unable to write to log file ' + self.log_file_path + '\n')
