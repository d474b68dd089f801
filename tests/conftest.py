"""Shared fixtures for the letsrenew test suite."""

import datetime
import io
import os

import pytest
import yaml
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from letsrenew.config import Configuration
from letsrenew.output import Output
from letsrenew.session import ChallengeResult, CertificateChain


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


def make_certificate(private_key, domains=('example.com',), not_after=None, issuer_key=None, issuer_name=None):
    now = datetime.datetime.now(datetime.timezone.utc)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])])
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name or subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(not_after or (now + datetime.timedelta(days=90)))
        .add_extension(x509.SubjectAlternativeName([x509.DNSName(domain) for domain in domains]), critical=False)
    )
    return builder.sign(issuer_key or private_key, hashes.SHA256())


def make_chain(private_key, domains=('example.com',), not_after=None):
    """Leaf signed by a throwaway intermediate, as an ACME CA would return."""
    issuer_key = ec.generate_private_key(ec.SECP256R1())
    issuer_name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, 'Test Intermediate')])
    now = datetime.datetime.now(datetime.timezone.utc)
    issuer = (
        x509.CertificateBuilder()
        .subject_name(issuer_name)
        .issuer_name(issuer_name)
        .public_key(issuer_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=30))
        .not_valid_after(now + datetime.timedelta(days=365))
        .sign(issuer_key, hashes.SHA256())
    )
    leaf = make_certificate(private_key, domains, not_after, issuer_key=issuer_key, issuer_name=issuer_name)
    return CertificateChain(leaf, [issuer])


@pytest.fixture()
def private_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture()
def certificate_chain(private_key):
    return make_chain(private_key)


@pytest.fixture()
def write_certificate(tmp_path):
    """Write a certificate for *domain* expiring in *days* into the cert dir."""
    def _write(domain, days):
        key = ec.generate_private_key(ec.SECP256R1())
        not_after = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(days=days)
        chain = make_chain(key, (domain,), not_after)
        path = tmp_path / 'certs' / (domain + '.crt')
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(chain.pem())
        return path
    return _write


# ---------------------------------------------------------------------------
# Configuration and output
# ---------------------------------------------------------------------------


@pytest.fixture()
def output():
    return Output(quiet=True, stdout=io.StringIO(), stderr=io.StringIO())


@pytest.fixture()
def config_data(tmp_path) -> dict:
    return {
        'account': {'email': 'admin@example.com'},
        'settings': {'log_level': 'none'},
        'directories': {
            'challenge': str(tmp_path / 'challenges'),
            'certificate': str(tmp_path / 'certs'),
            'account': str(tmp_path / 'accounts'),
            'log': str(tmp_path / 'log'),
            'pid': str(tmp_path / 'run'),
        },
        'profiles': {'site1': ['example.com']},
    }


@pytest.fixture()
def make_config(config_data):
    def _make(profiles=None, **settings):
        data = dict(config_data)
        data['settings'] = dict(config_data['settings'], **settings)
        if (profiles is not None):
            data['profiles'] = profiles
        return Configuration(data)
    return _make


@pytest.fixture()
def config(make_config):
    return make_config()


@pytest.fixture()
def config_file(tmp_path, config_data):
    path = tmp_path / 'letsrenew.yaml'
    path.write_text(yaml.safe_dump(config_data, default_flow_style=False, sort_keys=False))
    return path


# ---------------------------------------------------------------------------
# In-memory ACME collaborator
# ---------------------------------------------------------------------------


class FakeChallenge(object):
    """Stays pending for ``pending_polls`` refreshes, then reports ``final_status``.

    ``pending_polls=None`` never leaves pending.
    """

    def __init__(self, token, challenge_dir=None, pending_polls=0, final_status='valid', error=None, fail_with=None):
        self.token = token
        self.key_authorization = token + '.thumbprint'
        self.challenge_dir = challenge_dir
        self.pending_polls = pending_polls
        self.final_status = final_status
        self.error = error
        self.fail_with = fail_with
        self.validate_count = 0
        self.refresh_count = 0
        self.served = None

    def _result(self, polls):
        if ((self.pending_polls is None) or (polls < self.pending_polls)):
            return ChallengeResult('pending', 'https://acme.test/chall/' + self.token, None)
        return ChallengeResult(self.final_status, 'https://acme.test/chall/' + self.token, self.error)

    def validate(self):
        self.validate_count += 1
        if (self.challenge_dir):
            path = os.path.join(self.challenge_dir, self.token)
            with open(path) as challenge_file:
                self.served = challenge_file.read()
        if (self.fail_with):
            raise self.fail_with
        return self._result(0)

    def refresh(self):
        self.refresh_count += 1
        return self._result(self.refresh_count)


class FakeAuthorization(object):
    def __init__(self, domain, challenge, status='pending'):
        self.domain = domain
        self.status = status
        self.challenge = challenge

    def http_challenge(self):
        return self.challenge


class FakeOrder(object):
    def __init__(self, domains, authorizations, finalize_error=None):
        self.domains = list(domains)
        self._authorizations = authorizations
        self.finalize_error = finalize_error
        self.finalize_calls = []
        self.chain = None

    def authorizations(self):
        return list(self._authorizations)

    def finalize(self, csr_info, private_key, retry_count):
        self.finalize_calls.append((csr_info, private_key, retry_count))
        if (self.finalize_error):
            raise self.finalize_error
        self.chain = make_chain(private_key, tuple(self.domains))
        return self.chain


class FakeSession(object):
    """Creates orders whose challenges come from ``challenge_factory(domain)``."""

    def __init__(self, challenge_dir, challenge_factory=None, authorization_status='pending', finalize_error=None):
        self.challenge_dir = challenge_dir
        self.challenge_factory = challenge_factory or (lambda domain: FakeChallenge('token-' + domain, challenge_dir))
        self.authorization_status = authorization_status
        self.finalize_error = finalize_error
        self.orders = []

    def new_order(self, domains):
        authorizations = [FakeAuthorization(domain, self.challenge_factory(domain), self.authorization_status) for domain in domains]
        order = FakeOrder(domains, authorizations, self.finalize_error)
        self.orders.append(order)
        return order


class FakeAccountManager(object):
    def __init__(self, session=None, error=None):
        self.session = session
        self.error = error
        self.calls = 0

    def get_session(self):
        self.calls += 1
        if (self.error):
            raise self.error
        return self.session


@pytest.fixture()
def fake_session(config):
    return FakeSession(config.directory('challenge'))


@pytest.fixture()
def fake_account_manager(fake_session):
    return FakeAccountManager(fake_session)


@pytest.fixture()
def no_sleep():
    calls = []
    return calls, calls.append


@pytest.fixture()
def fake_challenge():
    return FakeChallenge


@pytest.fixture()
def fake_session_class():
    return FakeSession


@pytest.fixture()
def fake_account_manager_class():
    return FakeAccountManager


@pytest.fixture()
def fake_authorization_class():
    return FakeAuthorization
