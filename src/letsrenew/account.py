import os

from .errors import PrivateKeyError
from .session import generate_ecdsa_key, load_private_key_pem, new_session
from .utils import FileTransaction, commit_file_transactions


def account_key_file_name(email, staging) -> str:
    return '{email}{suffix}.pem'.format(email=email, suffix='_staging' if (staging) else '')


class AccountManager(object):
    """Loads or registers the ACME account for the configured email and environment."""

    def __init__(self, config, output, session_factory=new_session, user_agent='letsrenew'):
        self.config = config
        self.output = output
        self.session_factory = session_factory
        self.user_agent = user_agent

    @property
    def account_key_path(self) -> str:
        return os.path.join(self.config.directory('account'), account_key_file_name(self.config.email, self.config.staging))

    def _session(self, account_key):
        return self.session_factory(self.config.directory_url, account_key,
                                    user_agent=self.user_agent,
                                    verify_ssl=self.config.setting('acme_directory_verify_ssl'),
                                    finalize_delay=self.config.setting_int('finalize_delay'))

    def load_account_key(self):
        try:
            with open(self.account_key_path) as account_key_file:
                return load_private_key_pem(account_key_file.read())
        except Exception as error:
            raise PrivateKeyError('Unable to load account key ' + self.account_key_path + ': ' + str(error)) from error

    def get_session(self):
        account_key_path = self.account_key_path
        if (os.path.isfile(account_key_path)):
            account_key = self.load_account_key()
            self.output.detail('Loaded account key ', account_key_path, '\n')
            session = self._session(account_key)
            session.account()
            self.output.debug('Using existing account for ', self.config.email, ' at ', self.config.directory_url, '\n')
            return session

        self.output.status('Account key not present, registering ', self.config.email, ' at ', self.config.directory_url, '\n')
        session = self._session(generate_ecdsa_key('secp256r1'))
        session.new_account(self.config.email, True)

        with FileTransaction('account', account_key_path, chmod=0o600) as account_key_transaction:
            account_key_transaction.write(session.account_key_pem())
        commit_file_transactions([account_key_transaction], backup=False)
        self.output.detail('Saved account key ', account_key_path, '\n')
        return session
