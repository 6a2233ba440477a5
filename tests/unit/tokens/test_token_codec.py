"""
Tests unitaires pour JwtTokenCodec.

- Claims sub/type/iat/exp/jti/sid/iss
- Expiration vérifiée contre l'horloge injectée
- Signature altérée, mauvaise clé, mauvais émetteur: TokenInvalidError
"""

import jwt
import pytest

from authstate.core import CryptoProvider, SigningAlgorithm
from authstate.errors import TokenExpiredError, TokenInvalidError
from authstate.tokens import JwtTokenCodec, TokenPayload, TokenType

SECRET = "codec-secret-with-at-least-32-characters"


@pytest.fixture
def hs_codec(clock) -> JwtTokenCodec:
    return JwtTokenCodec(SECRET, SECRET, issuer="authstate", clock=clock)


def access_payload(clock, **kwargs) -> TokenPayload:
    return TokenPayload(subject="u-1", token_type=TokenType.ACCESS, issued_at=clock(), **kwargs)


class TestSign:
    def test_claims_written(self, hs_codec: JwtTokenCodec, clock) -> None:
        token = hs_codec.sign(access_payload(clock, session_id="s-1", claims={"email": "a@b.c"}), 900)

        claims = jwt.decode(token, SECRET, algorithms=["HS256"], options={"verify_exp": False}, issuer="authstate")
        iat = int(clock().timestamp())
        assert claims["sub"] == "u-1"
        assert claims["type"] == "access"
        assert claims["iat"] == iat
        assert claims["exp"] == iat + 900
        assert claims["sid"] == "s-1"
        assert claims["iss"] == "authstate"
        assert claims["email"] == "a@b.c"
        assert claims["jti"]

    def test_same_second_tokens_differ(self, hs_codec: JwtTokenCodec, clock) -> None:
        first = hs_codec.sign(access_payload(clock), 900)
        second = hs_codec.sign(access_payload(clock), 900)

        assert first != second

    def test_non_positive_ttl_rejected(self, hs_codec: JwtTokenCodec, clock) -> None:
        with pytest.raises(ValueError):
            hs_codec.sign(access_payload(clock), 0)

    def test_reserved_claims_rejected(self, hs_codec: JwtTokenCodec, clock) -> None:
        with pytest.raises(ValueError, match="Reserved"):
            hs_codec.sign(access_payload(clock, claims={"sub": "admin"}), 900)

    def test_sid_omitted_without_session(self, hs_codec: JwtTokenCodec, clock) -> None:
        token = hs_codec.sign(access_payload(clock), 900)

        assert "sid" not in jwt.decode(token, options={"verify_signature": False})


class TestVerify:
    def test_round_trip(self, hs_codec: JwtTokenCodec, clock) -> None:
        original = access_payload(clock, session_id="s-1", claims={"roles": ["user"]})

        payload = hs_codec.verify(hs_codec.sign(original, 900))

        assert payload.subject == "u-1"
        assert payload.token_type is TokenType.ACCESS
        assert payload.session_id == "s-1"
        assert payload.token_id == original.token_id
        assert payload.claims == {"roles": ["user"]}
        assert payload.issued_at == clock()
        assert payload.remaining_seconds(clock()) == 900

    def test_expired_at_exact_exp(self, hs_codec: JwtTokenCodec, clock) -> None:
        token = hs_codec.sign(access_payload(clock), 900)

        clock.advance(899)
        hs_codec.verify(token)

        clock.advance(1)
        with pytest.raises(TokenExpiredError):
            hs_codec.verify(token)

    def test_expired_is_a_token_invalid_error(self, hs_codec: JwtTokenCodec, clock) -> None:
        token = hs_codec.sign(access_payload(clock), 10)
        clock.advance(60)

        with pytest.raises(TokenInvalidError):
            hs_codec.verify(token)

    def test_tampered_signature(self, hs_codec: JwtTokenCodec, clock) -> None:
        token = hs_codec.sign(access_payload(clock), 900)
        header, body, signature = token.split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]

        with pytest.raises(TokenInvalidError):
            hs_codec.verify(f"{header}.{body}.{flipped}")

    def test_wrong_secret(self, hs_codec: JwtTokenCodec, clock) -> None:
        other = JwtTokenCodec("x" * 40, "x" * 40, issuer="authstate", clock=clock)

        with pytest.raises(TokenInvalidError):
            hs_codec.verify(other.sign(access_payload(clock), 900))

    def test_wrong_issuer(self, hs_codec: JwtTokenCodec, clock) -> None:
        foreign = JwtTokenCodec(SECRET, SECRET, issuer="someone-else", clock=clock)

        with pytest.raises(TokenInvalidError):
            hs_codec.verify(foreign.sign(access_payload(clock), 900))

    def test_missing_claim(self, hs_codec: JwtTokenCodec) -> None:
        token = jwt.encode({"sub": "u-1", "iss": "authstate"}, SECRET, algorithm="HS256")

        with pytest.raises(TokenInvalidError):
            hs_codec.verify(token)

    def test_unknown_token_type(self, hs_codec: JwtTokenCodec, clock) -> None:
        iat = int(clock().timestamp())
        token = jwt.encode(
            {"sub": "u-1", "type": "magic", "iat": iat, "exp": iat + 60, "jti": "j", "iss": "authstate"},
            SECRET,
            algorithm="HS256",
        )

        with pytest.raises(TokenInvalidError, match="claims"):
            hs_codec.verify(token)

    @pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
    def test_malformed(self, hs_codec: JwtTokenCodec, garbage: str) -> None:
        with pytest.raises(TokenInvalidError):
            hs_codec.verify(garbage)


class TestES384:
    def test_round_trip_with_generated_key(self, clock) -> None:
        provider = CryptoProvider.generate()
        codec = JwtTokenCodec(
            provider.signing_key(),
            provider.verification_key(),
            algorithm=SigningAlgorithm.ES384,
            clock=clock,
        )

        token = codec.sign(access_payload(clock), 900)

        assert jwt.get_unverified_header(token)["alg"] == "ES384"
        assert codec.verify(token).subject == "u-1"

    def test_other_key_rejected(self, clock) -> None:
        signer = CryptoProvider.generate()
        verifier = CryptoProvider.generate()
        codec = JwtTokenCodec(
            signer.signing_key(), verifier.verification_key(), algorithm=SigningAlgorithm.ES384, clock=clock
        )

        with pytest.raises(TokenInvalidError):
            codec.verify(codec.sign(access_payload(clock), 900))
