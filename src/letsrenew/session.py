"""Narrow ACME object model over ``acme.client.ClientV2``.

The renewal code only talks to the classes in this module (or to test
doubles with the same shape): a session creates accounts and orders, an
order yields authorizations and finalizes into a certificate chain, an
authorization yields its HTTP-01 challenge.
"""

import collections
import time

import josepy

from acme import client, errors, messages

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

from .errors import AcmeError, FinalizationError


LETS_ENCRYPT_DIRECTORY_URL = 'https://acme-v02.api.letsencrypt.org/directory'
LETS_ENCRYPT_STAGING_DIRECTORY_URL = 'https://acme-staging-v02.api.letsencrypt.org/directory'

CsrInfo = collections.namedtuple('CsrInfo', ['country', 'state', 'locality', 'organization', 'organization_unit', 'common_name'],
                                 defaults=('', '', '', '', '', None))
ChallengeResult = collections.namedtuple('ChallengeResult', ['status', 'url', 'error'])

EC_CURVES = {
    'secp256r1': (ec.SECP256R1, josepy.ES256),
    'secp384r1': (ec.SECP384R1, josepy.ES384),
    'secp521r1': (ec.SECP521R1, josepy.ES512),
}


def generate_ecdsa_key(key_curve='secp256r1'):
    key_curve = key_curve.lower()
    if (key_curve not in EC_CURVES):
        raise AcmeError('Unsupported key curve: ' + key_curve)
    return ec.generate_private_key(EC_CURVES[key_curve][0]())


def private_key_pem(private_key) -> str:
    return private_key.private_bytes(encoding=serialization.Encoding.PEM,
                                     format=serialization.PrivateFormat.TraditionalOpenSSL,
                                     encryption_algorithm=serialization.NoEncryption()).decode('ascii')


def load_private_key_pem(key_pem):
    if (isinstance(key_pem, str)):
        key_pem = key_pem.encode('ascii')
    return serialization.load_pem_private_key(key_pem, password=None)


def account_jwk(account_key):
    """JWK and signature algorithm for an account key."""
    if (isinstance(account_key, ec.EllipticCurvePrivateKey)):
        for curve_class, alg in EC_CURVES.values():
            if (isinstance(account_key.curve, curve_class)):
                return josepy.JWKEC(key=account_key), alg
        raise AcmeError('Unsupported account key curve: ' + account_key.curve.name)
    if (isinstance(account_key, rsa.RSAPrivateKey)):
        return josepy.JWKRSA(key=account_key), josepy.RS256
    raise AcmeError('Unsupported account key type: ' + type(account_key).__name__)


def generate_csr(csr_info, private_key, domain_names):
    """PEM encoded CSR for ``domain_names``; common name defaults to the first domain."""
    attributes = [x509.NameAttribute(NameOID.COMMON_NAME, csr_info.common_name or domain_names[0])]
    for oid, value in ((NameOID.COUNTRY_NAME, csr_info.country),
                       (NameOID.STATE_OR_PROVINCE_NAME, csr_info.state),
                       (NameOID.LOCALITY_NAME, csr_info.locality),
                       (NameOID.ORGANIZATION_NAME, csr_info.organization),
                       (NameOID.ORGANIZATIONAL_UNIT_NAME, csr_info.organization_unit)):
        if (value):
            attributes.append(x509.NameAttribute(oid, value))
    builder = x509.CertificateSigningRequestBuilder().subject_name(x509.Name(attributes))
    builder = builder.add_extension(x509.SubjectAlternativeName([x509.DNSName(domain_name) for domain_name in domain_names]), critical=False)
    csr = builder.sign(private_key, hashes.SHA256())
    return csr.public_bytes(serialization.Encoding.PEM)


class CertificateChain(object):
    """Issued certificate followed by its issuer certificates."""

    def __init__(self, certificate, issuers=()):
        self.certificate = certificate
        self.issuers = list(issuers)

    @classmethod
    def from_pem(cls, full_chain_pem):
        if (isinstance(full_chain_pem, str)):
            full_chain_pem = full_chain_pem.encode('ascii')
        certificates = x509.load_pem_x509_certificates(full_chain_pem)
        return cls(certificates[0], certificates[1:])

    def pem(self) -> str:
        return ''.join(certificate.public_bytes(serialization.Encoding.PEM).decode('ascii')
                       for certificate in [self.certificate] + self.issuers)


class HttpChallenge(object):
    def __init__(self, session, challenge_body):
        self.session = session
        self.challenge_body = challenge_body

    @property
    def token(self) -> str:
        return self.challenge_body.chall.encode('token')

    @property
    def key_authorization(self) -> str:
        return self.challenge_body.validation(self.session.jwk)

    def _result(self):
        error = self.challenge_body.error
        return ChallengeResult(self.challenge_body.status.name, self.challenge_body.uri, error.detail if (error) else None)

    def validate(self) -> ChallengeResult:
        challenge_resource = self.session.client.answer_challenge(self.challenge_body, self.challenge_body.response(self.session.jwk))
        self.challenge_body = challenge_resource.body
        return self._result()

    def refresh(self) -> ChallengeResult:
        response = self.session.client._post_as_get(self.challenge_body.uri)
        self.challenge_body = messages.ChallengeBody.from_json(response.json())
        return self._result()


class AcmeAuthorization(object):
    def __init__(self, session, authorization_resource):
        self.session = session
        self.authorization_resource = authorization_resource

    @property
    def domain(self) -> str:
        body = self.authorization_resource.body
        return ('*.' if getattr(body, 'wildcard', False) else '') + body.identifier.value

    @property
    def status(self) -> str:
        return self.authorization_resource.body.status.name

    def http_challenge(self) -> HttpChallenge:
        for challenge_body in self.authorization_resource.body.challenges:
            if ('http-01' == challenge_body.chall.typ):
                return HttpChallenge(self.session, challenge_body)
        raise AcmeError('Unable to use http-01 challenge for ' + self.domain)


class AcmeOrder(object):
    def __init__(self, session, order_resource, domain_names):
        self.session = session
        self.order_resource = order_resource
        self.domain_names = list(domain_names)

    def authorizations(self):
        return [AcmeAuthorization(self.session, authorization_resource) for authorization_resource in self.order_resource.authorizations]

    def _poll(self):
        response = self.session.client._post_as_get(self.order_resource.uri)
        body = messages.Order.from_json(response.json())
        self.order_resource = self.order_resource.update(body=body)
        return body

    def finalize(self, csr_info, private_key, retry_count) -> CertificateChain:
        """Submit a CSR and wait for the certificate.

        The order is polled while it is pending or processing, at most
        ``retry_count`` times, ``session.finalize_delay`` seconds apart.
        """
        body = self._poll()
        if (messages.STATUS_INVALID == body.status):
            raise FinalizationError('Order for ' + ', '.join(self.domain_names) + ' is invalid' + self._error_detail(body))
        csr_pem = generate_csr(csr_info, private_key, self.domain_names)
        self.order_resource = self.session.client.begin_finalization(self.order_resource.update(csr_pem=csr_pem))
        body = self.order_resource.body
        attempts = 0
        while (messages.STATUS_VALID != body.status):
            if (body.status not in (messages.STATUS_PENDING, messages.STATUS_PROCESSING, messages.STATUS_READY)):
                raise FinalizationError('Order for ' + ', '.join(self.domain_names) + ' failed with status ' + body.status.name + self._error_detail(body))
            if (retry_count <= attempts):
                raise FinalizationError('Order for ' + ', '.join(self.domain_names) + ' not issued after ' + str(attempts) + ' attempts')
            self.session.sleep(self.session.finalize_delay)
            body = self._poll()
            attempts += 1
        response = self.session.client._post_as_get(body.certificate)
        return CertificateChain.from_pem(response.text)

    def _error_detail(self, body):
        return (': ' + str(body.error.detail)) if (body.error) else ''


class AcmeSession(object):
    def __init__(self, acme_client, account_key, jwk, finalize_delay=1, sleep=time.sleep):
        self.client = acme_client
        self.account_key = account_key
        self.jwk = jwk
        self.finalize_delay = finalize_delay
        self.sleep = sleep
        self.registration = None

    def _lookup_conflict(self, error):
        registration = messages.RegistrationResource(uri=error.location, body=messages.Registration())
        self.registration = self.client.query_registration(registration)
        self.client.net.account = self.registration
        return self.registration

    def new_account(self, email, accept_tos=True):
        registration = messages.NewRegistration.from_data(email=email, terms_of_service_agreed=accept_tos)
        try:
            self.registration = self.client.new_account(registration)
        except errors.ConflictError as error:
            return self._lookup_conflict(error)
        return self.registration

    def account(self):
        try:
            self.registration = self.client.new_account(messages.NewRegistration(only_return_existing=True))
        except errors.ConflictError as error:
            return self._lookup_conflict(error)
        return self.registration

    def account_key_pem(self) -> str:
        return private_key_pem(self.account_key)

    def new_order(self, domain_names) -> AcmeOrder:
        identifiers = [messages.Identifier(typ=messages.IDENTIFIER_FQDN, value=domain_name) for domain_name in domain_names]
        response = self.client._post(self.client.directory['newOrder'], messages.NewOrder(identifiers=identifiers))
        body = messages.Order.from_json(response.json())
        authorizations = []
        for url in body.authorizations:
            authorizations.append(self.client._authzr_from_response(self.client._post_as_get(url), uri=url))
        order_resource = messages.OrderResource(body=body, uri=response.headers.get('Location'), authorizations=authorizations)
        return AcmeOrder(self, order_resource, domain_names)


def new_session(directory_url, account_key=None, *, user_agent='letsrenew', verify_ssl=True, finalize_delay=1) -> AcmeSession:
    """Connect to the ACME directory, generating an EC P-256 account key when none is given."""
    if (account_key is None):
        account_key = generate_ecdsa_key('secp256r1')
    jwk, alg = account_jwk(account_key)
    network = client.ClientNetwork(jwk, alg=alg, user_agent=user_agent, verify_ssl=verify_ssl)
    directory = client.ClientV2.get_directory(directory_url, network)
    return AcmeSession(client.ClientV2(directory, network), account_key, jwk, finalize_delay=finalize_delay)
