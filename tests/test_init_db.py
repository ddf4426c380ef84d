import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_admin.domain.users.repository import RoleRepository
from clinic_admin.scripts.init_db import seed_admin


@pytest.mark.integration
class TestSeeding:
    """Test role and administrator seeding"""

    @pytest.mark.asyncio
    async def test_roles_seeded_with_fixed_ids(self, db_session: AsyncSession) -> None:
        """Test the seeded roles and that reseeding adds nothing"""
        repo = RoleRepository(db_session)

        roles = {role.name: role.id for role in await repo.get_all()}

        assert roles == {
            "admin": 1,
            "practitioner": 2,
            "assistant": 3,
            "receptionist": 4,
            "manager": 5,
            "patient": 6,
            "client": 7,
        }
        assert await repo.seed_defaults() == []

    @pytest.mark.asyncio
    async def test_seed_admin(self, db_session: AsyncSession) -> None:
        """Test the first administrator is created once"""
        user = await seed_admin(db_session, "boss@clinic.org", "secret123", name="Boss")

        assert user.role.name == "admin"
        assert user.email_verified_at is not None
        assert user.verify_password("secret123")
        assert await seed_admin(db_session, "boss@clinic.org", "secret123") is None

    @pytest.mark.asyncio
    async def test_seed_admin_without_password(self, db_session: AsyncSession) -> None:
        """Test no account is made without a password"""
        assert await seed_admin(db_session, "boss@clinic.org", None) is None

    @pytest.mark.asyncio
    async def test_seeding_resets_postgres_sequence(self, session_factory, monkeypatch) -> None:
        """Test explicit role ids are followed by a sequence reset on PostgreSQL"""
        async with session_factory() as session:
            repo = RoleRepository(session)
            resets = []

            async def record_reset():
                resets.append(True)

            monkeypatch.setattr(repo, "_dialect_name", lambda: "postgresql")
            monkeypatch.setattr(repo, "_reset_id_sequence", record_reset)

            assert len(await repo.seed_defaults()) == 7
            assert resets == [True]

            # Nothing inserted, nothing to reset
            assert await repo.seed_defaults() == []
            assert resets == [True]

    @pytest.mark.asyncio
    async def test_seeding_skips_sequence_reset_on_sqlite(self, session_factory, monkeypatch) -> None:
        """Test SQLite seeding runs no sequence statement"""
        async with session_factory() as session:
            repo = RoleRepository(session)
            resets = []

            async def record_reset():
                resets.append(True)

            monkeypatch.setattr(repo, "_reset_id_sequence", record_reset)

            assert repo._dialect_name() == "sqlite"
            assert len(await repo.seed_defaults()) == 7
            assert resets == []
