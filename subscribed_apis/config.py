import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_URI = "mongodb://localhost:27017/"
DEFAULT_DB = "third-party-application"


@dataclass
class ReportConfig:
    """Configuration for the subscribed-apis report"""
    mongodb_uri: str = DEFAULT_URI
    db_name: str = DEFAULT_DB
    application_collection: str = "application"
    subscription_collection: str = "subscription"

    allow_disk_use: bool = False
    output_dir: Path = Path("./query_results")
    mongosh_path: Optional[str] = None
    timeout: int = 30

    @classmethod
    def from_env(cls, **overrides) -> "ReportConfig":
        """Build a config from the environment (and a .env file if one exists).

        Keyword overrides that are None are ignored so argparse defaults can
        be passed straight through. Names that are not fields raise TypeError.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise TypeError(f"Unknown ReportConfig field(s): {', '.join(unknown)}")
        load_dotenv(find_dotenv(usecwd=True))
        config = cls(
            mongodb_uri=os.getenv("MONGODB_URI", DEFAULT_URI),
            db_name=os.getenv("REPORT_DB_NAME", DEFAULT_DB),
            mongosh_path=os.getenv("MONGOSH_PATH") or None,
        )
        for key, value in overrides.items():
            if value is not None:
                setattr(config, key, value)
        return config
