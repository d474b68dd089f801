"""Tests for file helpers."""

import datetime
import os

import pytest

from letsrenew.utils import FileTransaction, backup_file_path, commit_file_transactions, makedir, open_file, process_running


BACKUP_DATE = datetime.datetime(2026, 3, 4, 5, 6, 7)


def test_makedir_adds_search_bits(tmp_path):
    dir_path = tmp_path / 'a' / 'b'
    makedir(str(dir_path), chmod=0o640)
    assert dir_path.is_dir()
    assert (os.stat(dir_path).st_mode & 0o777) == 0o750


def test_open_file_creates_parent(tmp_path):
    file_path = tmp_path / 'sub' / 'file.txt'
    with open_file(str(file_path), mode='w', chmod=0o600) as new_file:
        new_file.write('content')
    assert file_path.read_text() == 'content'
    assert (os.stat(file_path).st_mode & 0o777) == 0o600


class TestBackupFilePath:
    def test_timestamp_before_extension(self, tmp_path):
        assert backup_file_path(str(tmp_path / 'example.com.crt'), BACKUP_DATE) == str(tmp_path / 'example.com_20260304050607.crt')

    def test_counter_on_collision(self, tmp_path):
        (tmp_path / 'example.com_20260304050607.crt').write_text('')
        (tmp_path / 'example.com_20260304050607_1.crt').write_text('')
        assert backup_file_path(str(tmp_path / 'example.com.crt'), BACKUP_DATE) == str(tmp_path / 'example.com_20260304050607_2.crt')


class TestFileTransaction:
    def test_commit_moves_into_place(self, tmp_path):
        target = tmp_path / 'out.txt'
        with FileTransaction('test', str(target), chmod=0o644) as transaction:
            transaction.write('new')
        assert not target.exists()
        backups = commit_file_transactions([transaction], backup_date=BACKUP_DATE)

        assert target.read_text() == 'new'
        assert (os.stat(target).st_mode & 0o777) == 0o644
        assert backups == [(str(target), None)]
        assert os.listdir(tmp_path) == ['out.txt']

    def test_commit_backs_up_existing(self, tmp_path):
        target = tmp_path / 'out.txt'
        target.write_text('old')
        with FileTransaction('test', str(target)) as transaction:
            transaction.write('new')
        backups = commit_file_transactions([transaction], backup_date=BACKUP_DATE)

        backup_path = str(tmp_path / 'out_20260304050607.txt')
        assert backups == [(str(target), backup_path)]
        with open(backup_path) as backup:
            assert backup.read() == 'old'
        assert target.read_text() == 'new'

    def test_commit_without_backup(self, tmp_path):
        target = tmp_path / 'out.txt'
        target.write_text('old')
        with FileTransaction('test', str(target)) as transaction:
            transaction.write('new')
        commit_file_transactions([transaction], backup=False)
        assert sorted(os.listdir(tmp_path)) == ['out.txt']

    def test_exception_discards_temp_file(self, tmp_path):
        with pytest.raises(RuntimeError):
            with FileTransaction('test', str(tmp_path / 'out.txt')) as transaction:
                transaction.write('partial')
                raise RuntimeError('boom')
        assert os.listdir(tmp_path) == []

    def test_binary_mode(self, tmp_path):
        target = tmp_path / 'out.bin'
        with FileTransaction('test', str(target), mode='wb') as transaction:
            transaction.write(b'\x00\x01')
        commit_file_transactions([transaction])
        assert target.read_bytes() == b'\x00\x01'


class TestProcessRunning:
    def test_current_process(self, tmp_path):
        pid_file = tmp_path / 'test.pid'
        pid_file.write_text(str(os.getpid()))
        assert process_running(str(pid_file))

    def test_missing_pid_file(self, tmp_path):
        assert not process_running(str(tmp_path / 'missing.pid'))

    def test_garbage_pid_file(self, tmp_path):
        pid_file = tmp_path / 'test.pid'
        pid_file.write_text('not a pid')
        assert not process_running(str(pid_file))
