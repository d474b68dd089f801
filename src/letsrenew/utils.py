import datetime
import os
import shutil
import tempfile


BACKUP_DATE_FORMAT = '%Y%m%d%H%M%S'


def makedir(dir_path, chmod=None):
    if (dir_path and not os.path.isdir(dir_path)):
        os.makedirs(dir_path)
        if (chmod):
            if (chmod & 0o700):
                chmod |= 0o100
            if (chmod & 0o070):
                chmod |= 0o010
            if (chmod & 0o007):
                chmod |= 0o001
            os.chmod(dir_path, chmod)


def open_file(file_path, *, mode='r', chmod=0o666):
    def opener(file_path, flags):
        return os.open(file_path, flags, mode=chmod)
    if (('w' in mode) or ('a' in mode)):
        makedir(os.path.dirname(file_path), chmod=chmod)
    return open(file_path, mode, opener=opener)


def backup_file_path(file_path, backup_date):
    """Timestamped sibling of ``file_path`` that does not exist yet."""
    root, extension = os.path.splitext(file_path)
    stem = root + '_' + backup_date.strftime(BACKUP_DATE_FORMAT)
    backup_path = stem + extension
    counter = 0
    while (os.path.exists(backup_path)):
        counter += 1
        backup_path = '{stem}_{counter}{extension}'.format(stem=stem, counter=counter, extension=extension)
    return backup_path


def backup_file(file_path, backup_date):
    if (os.path.isfile(file_path) and (not os.path.islink(file_path))):
        backup_path = backup_file_path(file_path, backup_date)
        shutil.copy2(file_path, backup_path)
        return (file_path, backup_path)
    return (file_path, None)


class FileTransaction(object):
    """Write to a temporary file beside ``file_path``, renamed into place on commit."""

    __slots__ = ['file', 'temp_file_path', 'file_type', 'file_path', 'chmod']

    def __init__(self, file_type, file_path, chmod=None, mode='w'):
        self.file_type = file_type
        self.file_path = file_path
        self.chmod = chmod
        directory = os.path.dirname(file_path) or '.'
        makedir(directory)
        temp_file_descriptor, self.temp_file_path = tempfile.mkstemp(dir=directory, prefix='.' + os.path.basename(file_path) + '.')
        self.file = open(temp_file_descriptor, mode)

    def __del__(self):
        if (self.file):
            self.file.close()
            self.file = None

    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        if (self.file):
            self.file.close()
        if (value is not None):
            self.discard()

    def write(self, data):
        self.file.write(data)

    def discard(self):
        if (os.path.isfile(self.temp_file_path)):
            os.remove(self.temp_file_path)


def commit_file_transactions(file_transactions, backup=True, backup_date=None):
    """Move every transaction into place, returning ``(file_path, backup_path)`` pairs.

    Existing files are copied to timestamped backups first. If any move
    fails, committed files are removed and originals restored from their
    backups before the error is re-raised.
    """
    backed_up_files = []
    committed_files = []
    try:
        if (backup):
            backup_date = backup_date or datetime.datetime.now()
            for file_transaction in file_transactions:
                backed_up_files.append(backup_file(file_transaction.file_path, backup_date))
        for file_transaction in file_transactions:
            shutil.move(file_transaction.temp_file_path, file_transaction.file_path)
            committed_files.append(file_transaction.file_path)
            if (file_transaction.chmod):
                os.chmod(file_transaction.file_path, file_transaction.chmod)
    except Exception:
        for committed_file_path in committed_files:
            os.remove(committed_file_path)
        for original_file_path, backup_path in backed_up_files:
            if (backup_path):
                shutil.move(backup_path, original_file_path)
        for file_transaction in file_transactions:
            file_transaction.discard()
        raise
    return backed_up_files


def process_running(pid_file_path):
    try:
        with open(pid_file_path) as pid_file:
            return (-1 < os.getsid(int(pid_file.read())))
    except Exception:
        return False
