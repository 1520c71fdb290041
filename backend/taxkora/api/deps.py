"""
Shared API dependencies.
Provides reusable FastAPI dependencies for authentication, database access
and the tax engine's collaborators.
"""

from functools import lru_cache

from fastapi import HTTPException, Header, Depends
from supabase import create_client

from taxkora.config import get_settings
from taxkora.core.rate_tables import RateTableProvider
from taxkora.core.summary import TaxComputationOrchestrator
from taxkora.data.repository import SupabaseTaxRepository

settings = get_settings()


def get_supabase():
    """Get a Supabase client instance."""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


def get_supabase_admin():
    """Get a Supabase client with the service role key (bypasses RLS)."""
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


async def get_current_user(authorization: str = Header(...)):
    """
    Validate Supabase JWT token and return the authenticated user.
    Use as a FastAPI dependency: Depends(get_current_user)
    """
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    token = authorization.replace("Bearer ", "")
    supabase = get_supabase()

    try:
        user_response = supabase.auth.get_user(token)
        if not user_response or not user_response.user:
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        return user_response.user
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=401, detail=f"Authentication failed: {str(e)}")


async def get_current_user_id(user=Depends(get_current_user)) -> str:
    """Extract the Supabase user ID string from the authenticated user."""
    return user.id


@lru_cache()
def get_rate_provider() -> RateTableProvider:
    """Rate tables are immutable, so one provider serves every request."""
    return RateTableProvider.from_settings(settings.RATE_TABLES_FILE)


def get_repository():
    """The admin client is only built when a query runs."""
    return SupabaseTaxRepository(client_factory=get_supabase_admin)


def get_orchestrator(
    repository=Depends(get_repository),
    rate_provider: RateTableProvider = Depends(get_rate_provider),
) -> TaxComputationOrchestrator:
    return TaxComputationOrchestrator(repository, rate_provider)
