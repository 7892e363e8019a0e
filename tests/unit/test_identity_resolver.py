"""Unit tests for identity derivation and the IdentityResolver."""

import hashlib
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from clm_assessment.core.identity import ResolutionOutcome, derive_user_identifier
from clm_assessment.core.services import IdentityResolver


@pytest.fixture()
def mock_store() -> AsyncMock:
    return AsyncMock()


@pytest.fixture()
def resolver(mock_store: AsyncMock) -> IdentityResolver:
    return IdentityResolver(mock_store, total_questions=38)


def _session(session_id: str) -> SimpleNamespace:
    return SimpleNamespace(session_id=session_id)


class TestDeriveUserIdentifier:
    def test_truncated_sha256_of_lowercased_pair(self) -> None:
        expected = hashlib.sha256(b"ana@acme.com_acme corp").hexdigest()[:16]

        assert derive_user_identifier("Ana@Acme.com", "ACME Corp") == expected

    def test_case_and_whitespace_insensitive(self) -> None:
        assert derive_user_identifier(" ana@acme.com ", "acme") == derive_user_identifier("ANA@ACME.COM", "Acme")


class TestResolve:
    """Tests for IdentityResolver.resolve."""

    @pytest.mark.asyncio()
    async def test_by_session_id_found(self, resolver: IdentityResolver, mock_store: AsyncMock) -> None:
        mock_store.find_session_by.return_value = _session("s-1")

        resolution = await resolver.resolve(session_id="s-1")

        assert resolution.outcome == ResolutionOutcome.FOUND
        assert resolution.session.session_id == "s-1"
        mock_store.find_session_by.assert_awaited_once_with(session_id="s-1")

    @pytest.mark.asyncio()
    async def test_by_email_not_found(self, resolver: IdentityResolver, mock_store: AsyncMock) -> None:
        mock_store.find_session_by.return_value = None

        resolution = await resolver.resolve(email="nobody@example.com")

        assert resolution.outcome == ResolutionOutcome.NOT_FOUND
        assert resolution.session is None

    @pytest.mark.asyncio()
    async def test_company_multi_with_several_matches_is_ambiguous(
        self, resolver: IdentityResolver, mock_store: AsyncMock
    ) -> None:
        newest, older = _session("s-2"), _session("s-1")
        mock_store.find_session_by.return_value = [newest, older]

        resolution = await resolver.resolve(company="Acme", multi=True)

        assert resolution.outcome == ResolutionOutcome.AMBIGUOUS
        assert resolution.needs_choice
        assert [c.session_id for c in resolution.candidates] == ["s-2", "s-1"]
        mock_store.find_session_by.assert_awaited_once_with(company="Acme", multi=True)

    @pytest.mark.asyncio()
    async def test_company_multi_with_one_match_is_found(
        self, resolver: IdentityResolver, mock_store: AsyncMock
    ) -> None:
        mock_store.find_session_by.return_value = [_session("s-1")]

        resolution = await resolver.resolve(company="Acme", multi=True)

        assert resolution.outcome == ResolutionOutcome.FOUND

    @pytest.mark.asyncio()
    async def test_requires_a_lookup_key(self, resolver: IdentityResolver) -> None:
        with pytest.raises(ValueError):
            await resolver.resolve(email="   ")


class TestCreateSession:
    """Tests for IdentityResolver.create_session."""

    @pytest.mark.asyncio()
    async def test_existing_email_defers_creation(
        self, resolver: IdentityResolver, mock_store: AsyncMock
    ) -> None:
        mock_store.find_session_by.return_value = _session("existing")

        resolution = await resolver.create_session(email="ana@acme.com", company="Acme")

        assert resolution.outcome == ResolutionOutcome.DUPLICATE
        assert resolution.session.session_id == "existing"
        mock_store.create_session.assert_not_awaited()

    @pytest.mark.asyncio()
    async def test_allow_duplicate_skips_the_check(
        self, resolver: IdentityResolver, mock_store: AsyncMock
    ) -> None:
        mock_store.create_session.return_value = _session("new")

        resolution = await resolver.create_session(email="ana@acme.com", company="Acme", allow_duplicate=True)

        assert resolution.outcome == ResolutionOutcome.CREATED
        mock_store.find_session_by.assert_not_awaited()
        mock_store.create_session.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_new_email_creates_with_identifier(
        self, resolver: IdentityResolver, mock_store: AsyncMock
    ) -> None:
        mock_store.find_session_by.return_value = None
        mock_store.create_session.return_value = _session("new")

        await resolver.create_session(email=" Ana@Acme.com ", company="Acme", respondent_name="Ana")

        values = mock_store.create_session.await_args.args[0]
        assert values["respondent_email"] == "Ana@Acme.com"
        assert values["user_identifier"] == derive_user_identifier("ana@acme.com", "acme")
        assert values["total_questions"] == 38
        assert len(values["session_id"]) == 36
