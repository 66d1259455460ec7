"""
Signing codec for session cookies and stored session data.

Values are serialized as signed JSON web tokens. Several keys may be
configured to support key rotation: the first key always signs, and every
key is tried in order when verifying.
"""

from datetime import datetime, timedelta
from typing import Any, List, Sequence, Union

import jwt
from pytz import UTC

from .exceptions import ConfigurationError, EncodingFailed, InvalidCookie

Key = Union[str, bytes]

DEFAULT_MAX_AGE = 86400 * 30
"""Lifetime of a signed value, in seconds."""

ALGORITHM = 'HS256'


class Codec(object):
    """Signs and verifies values with a single secret key."""

    def __init__(self, key: Key, max_age: int = DEFAULT_MAX_AGE) -> None:
        if not key:
            raise ConfigurationError('Signing key may not be empty')
        self._key = key
        self.max_age = max_age

    def encode(self, name: str, value: Any) -> str:
        """
        Sign ``value`` under ``name``.

        Parameters
        ----------
        name : str
            Name the value is bound to, usually the cookie name.
        value : object
            Any JSON-serializable value.

        Returns
        -------
        str
            A compact JWT.

        Raises
        ------
        :class:`EncodingFailed`
            Raised if the value cannot be serialized.

        """
        issued_at = datetime.now(tz=UTC)
        claims = {'name': name, 'value': value, 'iat': issued_at}
        if self.max_age > 0:
            claims['exp'] = issued_at + timedelta(seconds=self.max_age)
        try:
            return jwt.encode(claims, self._key, algorithm=ALGORITHM)
        except (TypeError, ValueError) as e:
            raise EncodingFailed(f'Cannot encode value: {e}') from e

    def decode(self, name: str, token: str) -> Any:
        """
        Verify ``token`` and return the value it carries.

        Raises
        ------
        :class:`InvalidCookie`
            Raised if the token is malformed, has a bad signature, has
            expired, or was issued for a different name.

        """
        try:
            claims = jwt.decode(token, self._key, algorithms=[ALGORITHM],
                                options={'require': ['name', 'iat']})
        except jwt.exceptions.ExpiredSignatureError as e:
            raise InvalidCookie('Signed value has expired') from e
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidCookie(f'Signed value is invalid: {e}') from e
        if claims['name'] != name:
            raise InvalidCookie('Signed value was issued for another name')
        if 'value' not in claims:
            raise InvalidCookie('Signed value is malformed')
        return claims['value']


def codecs_from_keys(*keys: Key, max_age: int = DEFAULT_MAX_AGE) \
        -> List[Codec]:
    """Build one :class:`Codec` per key, in rotation order."""
    if not keys:
        raise ConfigurationError('At least one signing key is required')
    return [Codec(key, max_age=max_age) for key in keys]


def encode_multi(name: str, value: Any, codecs: Sequence[Codec]) -> str:
    """Sign ``value`` with the primary (first) codec."""
    if not codecs:
        raise ConfigurationError('No codecs configured')
    return codecs[0].encode(name, value)


def decode_multi(name: str, token: str, codecs: Sequence[Codec]) -> Any:
    """
    Verify ``token`` against each codec in turn.

    Returns
    -------
    object
        The value from the first codec that accepts the token.

    Raises
    ------
    :class:`InvalidCookie`
        Raised if no codec accepts the token.

    """
    if not codecs:
        raise ConfigurationError('No codecs configured')
    error = None
    for codec in codecs:
        try:
            return codec.decode(name, token)
        except InvalidCookie as e:
            error = e
    raise InvalidCookie(str(error)) from error
