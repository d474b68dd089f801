from .errors import ErrorCode
from .output import indent
from .utils import makedir


PROVISIONED_DIRECTORIES = ('challenge', 'certificate', 'account')


def ensure_directories(config, output):
    """Create the challenge, certificate and account directories; failure is fatal."""
    for file_type in PROVISIONED_DIRECTORIES:
        dir_path = config.directory(file_type)
        try:
            makedir(dir_path, chmod=0o700 if ('account' == file_type) else None)
        except Exception as error:
            output.fatal('Unable to create ', file_type, ' directory ', dir_path, '\n', indent(error), '\n', code=ErrorCode.PERMISSION)
        output.detail('Using ', file_type, ' directory ', dir_path, '\n')
