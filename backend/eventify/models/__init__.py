from __future__ import annotations

from eventify.models.auth import AuthNonce, RefreshSession  # noqa: F401
from eventify.models.user import WalletUser  # noqa: F401
