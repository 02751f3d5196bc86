"""
Synthetic Data Generator

Generates realistic capture-frontend data for testing and development.
Includes:
- Product catalog entries with sku, product id and public id
- Session documents with mixed device hints, raw classification spellings,
  US locations, ranked click tokens, shares and downloads
"""

import random
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from faker import Faker

from surface_analytics.analytics.catalog import CatalogEntry


# =============================================================================
# CONFIGURATION
# =============================================================================

CATEGORIES = [
    ("cleaners", ["Carpet Shampoo", "Floor Cleaner", "Spot Remover", "Multi-Surface Spray"]),
    ("equipment", ["Upright Vacuum", "Wet Dry Vac", "Steam Mop", "Carpet Extractor"]),
    ("accessories", ["Brush Roll", "Mop Pad", "Filter Kit", "Crevice Tool"]),
]

# Raw spellings seen in the classification field
CLASSIFICATION_SPELLINGS = [
    ("carpet", 0.25),
    ("Carpet", 0.10),
    ("hard_surface", 0.20),
    ("Hard Surface", 0.08),
    ("hard-surface", 0.05),
    ("mixed", 0.15),
    ("both", 0.05),
    ("unknown", 0.07),
    ("", 0.05),
]

DEVICE_HINTS = [
    ("mobile", 0.35),
    ("Mobile Phone", 0.05),
    ("desktop", 0.20),
    ("tablet", 0.05),
    ("unknown", 0.15),
    (None, 0.20),
]

USER_AGENTS = [
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148",
    "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 Chrome/120.0 Mobile Safari/537.36",
    "Mozilla/5.0 (iPad; CPU OS 17_2 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148",
    "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 Chrome/120.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_2) AppleWebKit/605.1.15 Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "",
]

NOISE_TOKENS = ["page_scrolled", "filters_opened", "camera_retake", "help_viewed"]


def _weighted(rng: random.Random, options):
    values, weights = zip(*options)
    return rng.choices(values, weights=weights)[0]


# =============================================================================
# GENERATORS
# =============================================================================

class ProductCatalogGenerator:
    """Generate a product catalog"""

    def __init__(self, seed: int = 42):
        self.rng = random.Random(seed)
        self.fake = Faker("en_US")
        self.fake.seed_instance(seed)

    def generate(self, n: int = 200) -> List[CatalogEntry]:
        """Generate n products with distinct identifiers"""
        products = []
        for i in range(n):
            category, kinds = self.rng.choice(CATEGORIES)
            products.append(CatalogEntry(
                sku=f"SKU-{i:06d}",
                product_id=str(uuid.UUID(int=self.rng.getrandbits(128))),
                public_id=f"P{i:05d}{self.fake.lexify('???').upper()}",
                name=f"{self.fake.word().title()} {self.rng.choice(kinds)}",
                category=category,
            ))
        return products


class SessionEventGenerator:
    """
    Generate raw session documents.

    A fixed pool of users is drawn with a heavy-tailed weight so some users
    return many times and most appear once or twice.
    """

    def __init__(
        self,
        products: Sequence[CatalogEntry],
        seed: int = 42,
        missing_user_rate: float = 0.03,
    ):
        if not products:
            raise ValueError("At least one product is required")
        self.products = list(products)
        self.rng = random.Random(seed)
        self.np_rng = np.random.default_rng(seed)
        self.fake = Faker("en_US")
        self.fake.seed_instance(seed)
        self.missing_user_rate = missing_user_rate

    def _locations(self, n: int) -> List[Dict[str, str]]:
        return [{"state": self.fake.state(), "city": self.fake.city()} for _ in range(n)]

    def generate(
        self,
        n: int = 1000,
        users: int = 200,
        days: int = 60,
        end: Optional[datetime] = None,
        results_per_session: int = 10,
    ) -> List[Dict[str, Any]]:
        """
        Generate n session documents spread over the ``days`` before ``end``.

        Returns:
            List of camelCase documents as written by the capture frontend
        """
        end = end or datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)
        start = end - timedelta(days=days)

        user_ids = [str(uuid.UUID(int=self.rng.getrandbits(128))) for _ in range(users)]
        weights = self.np_rng.pareto(1.5, users) + 1
        weights = weights / weights.sum()
        home = dict(zip(user_ids, self._locations(users)))

        # Daytime-heavy upload times
        offsets = np.sort(self.np_rng.uniform(0, days * 86400, n))
        hours = np.clip(self.np_rng.normal(14, 4, n), 0, 23.99)
        chosen = self.np_rng.choice(users, size=n, p=weights)

        documents = []
        for i in range(n):
            day = start + timedelta(seconds=float(offsets[i]))
            created_at = day.replace(hour=int(hours[i]), minute=self.rng.randint(0, 59))

            user_id = user_ids[int(chosen[i])]
            if self.rng.random() < self.missing_user_rate:
                document_user = None
            else:
                document_user = user_id

            results = self.rng.sample(self.products, min(results_per_session, len(self.products)))
            documents.append({
                "sessionId": str(uuid.UUID(int=self.rng.getrandbits(128))),
                "userId": document_user,
                "createdAt": created_at.isoformat() + "Z",
                "classification": _weighted(self.rng, CLASSIFICATION_SPELLINGS),
                "deviceType": _weighted(self.rng, DEVICE_HINTS),
                "deviceInfo": self.rng.choice(USER_AGENTS),
                "userLocation": home[user_id],
                "searchResults": [{"sku": p.sku} for p in results],
                "userActions": self._actions(results, created_at),
                "userImage": self.fake.image_url(),
            })

        return documents

    def _actions(self, results: Sequence[CatalogEntry], created_at: datetime) -> List[Dict[str, Any]]:
        actions = []
        moment = created_at

        def log(token: str) -> None:
            nonlocal moment
            moment = moment + timedelta(seconds=self.rng.randint(2, 90))
            actions.append({"action": token, "timestamp": moment.isoformat() + "Z"})

        # Clicks favor the top of the result list
        for _ in range(int(self.np_rng.poisson(1.2))):
            rank = min(int(self.np_rng.geometric(0.45)) - 1, len(results) - 1)
            log(
                f"result_opened_of_current_index_{rank}"
                f"_result_index_{rank}_public_id_{results[rank].public_id}"
            )

        if self.rng.random() < 0.03:
            log("result_opened")
        if self.rng.random() < 0.12:
            log("link_copied")
        if self.rng.random() < 0.05:
            log("result_shared_on_mail")
        if self.rng.random() < 0.08:
            log("summary_downloaded")
        for _ in range(self.rng.randint(0, 4)):
            log(self.rng.choice(NOISE_TOKENS))

        return actions
