import os
import time

from .errors import ChallengeTimeoutError, ChallengeValidationError
from .utils import open_file


WELL_KNOWN_PATH = '/.well-known/acme-challenge/'
POLLING_STATUSES = ('pending', 'processing')


class ChallengeResponder(object):
    """Answers one HTTP-01 authorization and waits for the server's verdict.

    The key authorization is written verbatim to ``<challenge dir>/<token>``,
    which an external web server must publish under
    ``/.well-known/acme-challenge/<token>``. The challenge is then polled every
    ``authorization_delay`` seconds while pending or processing, at most
    ``max_authorization_attempts`` times.
    """

    def __init__(self, config, output, sleep=time.sleep):
        self.config = config
        self.output = output
        self.sleep = sleep
        self.max_attempts = config.setting_int('max_authorization_attempts')
        self.delay = config.setting_int('authorization_delay')

    def challenge_file_path(self, token) -> str:
        return os.path.join(self.config.directory('challenge'), token)

    def authorize(self, authorization):
        self.output.debug('Requesting authorization for ', authorization.domain, '\n')
        challenge = authorization.http_challenge()
        token = challenge.token
        key_authorization = challenge.key_authorization
        self.output.detail('  Token: ', token, '\n',
                           '  File:  ', WELL_KNOWN_PATH, token, '\n',
                           '  Auth:  ', key_authorization, '\n')

        challenge_file_path = self.challenge_file_path(token)
        with open_file(challenge_file_path, mode='w', chmod=0o644) as challenge_file:
            challenge_file.write(key_authorization)
        self.output.debug('Challenge saved to ', challenge_file_path, '\n')

        try:
            self.output.debug('Waiting for challenge validation\n')
            result = challenge.validate()
            attempts = 0
            while (result.status in POLLING_STATUSES):
                if (self.max_attempts <= attempts):
                    raise ChallengeTimeoutError(token)
                self.sleep(self.delay)
                self.output.detail('Polling for ', authorization.domain, '\n')
                result = challenge.refresh()
                attempts += 1

            self.output.debug('  Result.Status: ', result.status, '\n',
                              '  Result.Url: ', result.url, '\n')
            if (result.error):
                self.output.debug('  Result.Error: ', result.error, '\n')
            if ('valid' != result.status):
                raise ChallengeValidationError(token, result.status, result.error)
            self.output.debug('Authorization received for ', authorization.domain, '\n')
        finally:
            self.output.detail('Removing http acme-challenge for ', authorization.domain, '\n')
            if (os.path.isfile(challenge_file_path)):
                os.remove(challenge_file_path)
