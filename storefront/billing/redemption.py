import logging
import secrets

from sqlalchemy.exc import IntegrityError

from storefront.errors import CodeGenerationExhausted
from storefront.models import RedemptionCode

logger = logging.getLogger(__name__)

# No 0/O, 1/I/L: codes get read out over the phone
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"


def generate_code(length=8):
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(code):
    return (code or "").strip().upper()


class RedemptionCodeIssuer:
    """
    Binds one redemption code to a paid order.

    Runs inside the caller's settlement transaction. Asking twice for the
    same order returns the code issued the first time.
    """

    def __init__(self, store, generator=None, length=8, max_attempts=10):
        self.store = store
        self.generator = generator or generate_code
        self.length = length
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, store, config, generator=None):
        return cls(
            store,
            generator=generator,
            length=config.get("REDEMPTION_CODE_LENGTH", 8),
            max_attempts=config.get("REDEMPTION_CODE_MAX_ATTEMPTS", 10),
        )

    def issue(self, order_id, shop_id) -> RedemptionCode:
        existing = self.store.get_by(RedemptionCode, order_id=order_id)
        if existing is not None:
            return existing

        for attempt in range(1, self.max_attempts + 1):
            code = normalize_code(self.generator(self.length))
            if self.store.exists(RedemptionCode, code=code):
                logger.info("Redemption code collision", extra={"order_id": order_id, "attempt": attempt})
                continue

            try:
                result = self.store.insert_unique(
                    RedemptionCode(code=code, order_id=order_id, shop_id=shop_id),
                    lookup={"order_id": order_id},
                )
            except IntegrityError:
                # The code was taken between the check and the insert
                logger.info("Redemption code collision on insert", extra={"order_id": order_id, "attempt": attempt})
                continue

            if result.created:
                logger.info("Redemption code issued", extra={"order_id": order_id})
            return result.row

        logger.error("Redemption code generation exhausted", extra={"order_id": order_id})
        raise CodeGenerationExhausted(payload={"order_id": order_id})
