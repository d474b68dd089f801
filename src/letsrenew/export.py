import datetime
import os

from cryptography.hazmat.primitives.serialization import NoEncryption, pkcs12

from .utils import FileTransaction, commit_file_transactions


class CertificateExporter(object):
    """Writes ``<domain>.crt`` (PEM chain) and ``<domain>.pfx`` (PKCS#12, no password).

    Existing files are copied to ``<domain>_<YYYYMMDDHHMMSS>.crt|.pfx`` before
    being replaced.
    """

    def __init__(self, config, output, now=datetime.datetime.now):
        self.config = config
        self.output = output
        self.now = now

    def file_path(self, domain, extension) -> str:
        return os.path.join(self.config.directory('certificate'), domain.replace('*', '_') + extension)

    def pkcs12(self, domain, certificate_chain, private_key) -> bytes:
        return pkcs12.serialize_key_and_certificates(domain.encode('utf-8'), private_key, certificate_chain.certificate,
                                                     certificate_chain.issuers or None, NoEncryption())

    def export(self, domain, certificate_chain, private_key):
        self.output.debug('Export certificate for ', domain, '\n')
        certificate_pem = certificate_chain.pem()
        pkcs12_data = self.pkcs12(domain, certificate_chain, private_key)
        transactions = []
        try:
            with FileTransaction('certificate', self.file_path(domain, '.crt'), chmod=0o644) as certificate_transaction:
                certificate_transaction.write(certificate_pem)
                transactions.append(certificate_transaction)
            with FileTransaction('pkcs12', self.file_path(domain, '.pfx'), chmod=0o640, mode='wb') as pkcs12_transaction:
                pkcs12_transaction.write(pkcs12_data)
                transactions.append(pkcs12_transaction)
        except Exception:
            for file_transaction in transactions:
                file_transaction.discard()
            raise

        backups = commit_file_transactions(transactions, backup_date=self.now())
        for file_path, backup_path in backups:
            if (backup_path):
                self.output.detail('Backed up ', file_path, ' as ', backup_path, '\n')
        self.output.status('Certificate for ', domain, ' installed\n')
        return backups
