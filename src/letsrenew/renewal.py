import collections
import datetime
import os

from cryptography import x509

from .account import AccountManager
from .challenge import ChallengeResponder
from .errors import AcmeError, ChallengeTimeoutError, ChallengeValidationError, ErrorCode, PrivateKeyError
from .export import CertificateExporter
from .output import indent
from .session import generate_ecdsa_key


RENEWED = 'renewed'
SKIPPED = 'skipped'
FAILED = 'failed'

ProfileResult = collections.namedtuple('ProfileResult', ['profile', 'status', 'error'])


class BatchReport(object):
    """Ordered results of one pass over the configured profiles."""

    def __init__(self, results=()):
        self.results = list(results)

    def __iter__(self):
        return iter(self.results)

    def __len__(self):
        return len(self.results)

    def add(self, result):
        self.results.append(result)

    def _with_status(self, status):
        return [result for result in self.results if (status == result.status)]

    @property
    def renewed(self):
        return self._with_status(RENEWED)

    @property
    def skipped(self):
        return self._with_status(SKIPPED)

    @property
    def failed(self):
        return self._with_status(FAILED)

    @property
    def ok(self) -> bool:
        return not self.failed


def utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


def needs_renewal(expiry, now, renewal_days) -> bool:
    """Renew unless the certificate stays valid for more than ``renewal_days``."""
    return not ((expiry - now) > datetime.timedelta(days=renewal_days))


def error_code(error) -> ErrorCode:
    """Exit status reported for a failed profile."""
    if (isinstance(error, PrivateKeyError)):
        return ErrorCode.KEY
    if (isinstance(error, (ChallengeTimeoutError, ChallengeValidationError))):
        return ErrorCode.AUTH
    return ErrorCode.ACME


def certificate_expiry(certificate_path):
    with open(certificate_path, 'rb') as certificate_file:
        certificate = x509.load_pem_x509_certificate(certificate_file.read())
    return certificate.not_valid_after_utc


class RenewalManager(object):
    """Renews each configured profile whose certificate is missing or close to expiry."""

    def __init__(self, config, output, *, account_manager=None, challenge_responder=None, exporter=None,
                 now=utcnow, force=False):
        self.config = config
        self.output = output
        self.account_manager = account_manager or AccountManager(config, output)
        self.challenge_responder = challenge_responder or ChallengeResponder(config, output)
        self.exporter = exporter or CertificateExporter(config, output)
        self.now = now
        self.force = force
        self._session = None

    @property
    def session(self):
        if (self._session is None):
            self._session = self.account_manager.get_session()
        return self._session

    def certificate_path(self, profile) -> str:
        return self.exporter.file_path(profile.domains[0], '.crt')

    def update_all_certificates(self, profile_names=None) -> BatchReport:
        report = BatchReport()
        for profile in self.config.profiles:
            if (profile_names and (profile.name not in profile_names)):
                continue
            self.output.info('Checking profile ', profile.name, ', Domains: ', ', '.join(profile.domains), '\n')
            try:
                report.add(self.update_certificate(profile))
            except Exception as error:
                self.output.error('Error updating certificate for ', profile.name, '\n', indent(error), '\n', code=error_code(error))
                report.add(ProfileResult(profile, FAILED, error))
        self.output.info('Finished updating profiles\n')
        return report

    def update_certificate(self, profile) -> ProfileResult:
        certificate_path = self.certificate_path(profile)
        if (os.path.isfile(certificate_path) and not self.force):
            expiry = certificate_expiry(certificate_path)
            valid_duration = expiry - self.now()
            self.output.debug('Current certificate for ', profile.name, ' expires in ', valid_duration.days,
                              ' day' if (1 == valid_duration.days) else ' days', '\n')
            if (not needs_renewal(expiry, self.now(), self.config.setting_int('renewal_days'))):
                self.output.info('Certificate for ', profile.name, ' is valid to ', expiry.strftime('%Y-%m-%d %H:%M:%S UTC'),
                                 '. No need to renew.\n')
                return ProfileResult(profile, SKIPPED, None)

        self.output.status('Renewing certificate for ', profile.name, ': ', ', '.join(profile.domains), '\n')
        order = self.session.new_order(list(profile.domains))
        self._authorize(order)

        private_key = generate_ecdsa_key(self.config.key_curve)
        certificate_chain = order.finalize(self.config.csr_info(), private_key, self.config.setting_int('max_finalize_attempts'))
        self.output.debug('New certificate issued for ', profile.name, '\n')

        for domain in profile.domains:
            self.exporter.export(domain, certificate_chain, private_key)
        return ProfileResult(profile, RENEWED, None)

    def _authorize(self, order):
        for authorization in order.authorizations():
            if ('valid' == authorization.status):
                self.output.detail(authorization.domain, ' already authorized\n')
            elif ('pending' == authorization.status):
                self.challenge_responder.authorize(authorization)
            else:
                raise AcmeError('Unexpected status "' + str(authorization.status) + '" for authorization of ' + authorization.domain)
