import logging
from pathlib import Path
from typing import List, Optional

import pandas as pd

from .models import MarketplaceOffer, MockListing

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent / "data"
LISTING_COUNT = 3


class MockCatalog:
    """Static stand-in for a real price source.

    Listings back ``/api/search``; marketplace offers back the Telegram reply.
    Both are loaded once from the bundled CSV files.
    """

    LISTING_COLUMNS = ["suffix", "price", "source", "location", "rating"]
    OFFER_COLUMNS = ["platform", "store", "price", "stars"]

    def __init__(self, data_dir: Optional[Path] = None):
        data_dir = Path(data_dir or DATA_DIR)
        self.listings = self._load_csv(data_dir / "mock_listings.csv", self.LISTING_COLUMNS)
        self.offers_df = self._load_csv(data_dir / "marketplace_offers.csv", self.OFFER_COLUMNS)
        self.offers_df["price"] = self.offers_df["price"].astype(int)
        self.offers_df["stars"] = self.offers_df["stars"].astype(int)

        if len(self.listings) != LISTING_COUNT:
            raise ValueError(f"expected {LISTING_COUNT} mock listings, found {len(self.listings)}")
        if (self.listings == "").any().any():
            raise ValueError("mock listings must not contain empty fields")
        if self.offers_df.empty:
            raise ValueError("at least one marketplace offer is required")
        logger.info("Loaded %s mock listings and %s marketplace offers", len(self.listings), len(self.offers_df))

    def _load_csv(self, filepath: Path, columns: List[str]) -> pd.DataFrame:
        df = pd.read_csv(filepath, encoding="utf-8-sig", dtype=str).fillna("")
        df.columns = df.columns.str.strip()
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ValueError(f"{filepath.name} is missing columns: {', '.join(missing)}")
        return df[columns].apply(lambda col: col.str.strip())

    def listings_for(self, label: str) -> List[MockListing]:
        return [
            MockListing(
                title=f"{label} - {row['suffix']}",
                price=row["price"],
                source=row["source"],
                location=row["location"],
                rating=row["rating"],
            )
            for _, row in self.listings.iterrows()
        ]

    def offers(self) -> List[MarketplaceOffer]:
        return [
            MarketplaceOffer(platform=row["platform"], store=row["store"], price=int(row["price"]), stars=int(row["stars"]))
            for _, row in self.offers_df.iterrows()
        ]

    def best_offer(self) -> int:
        return int(self.offers_df["price"].min())
