from __future__ import annotations

from callreveal.models.advice import Advice  # noqa: F401
from callreveal.models.auth import AdminUser  # noqa: F401
from callreveal.models.kv import KVEntry  # noqa: F401
from callreveal.models.prediction import Prediction  # noqa: F401
from callreveal.models.revelation import Revelation  # noqa: F401
