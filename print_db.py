"""Print dataset coverage and per-user progress from the configured storage.

This script reuses the same environment settings as the application
(`STORAGE_BACKEND`, `DATABASE_DIR`, ...) via `utils.config.Settings`.

Run: set `DATABASE_DIR` (and optionally `STORAGE_BACKEND`) and run
      `python print_db.py`. Pass `--seed` to load the sample users and
      dataset into empty storage first.
"""
import argparse
import asyncio

from dal.factory import build_dal
from services.progress import ProgressAggregator
from services.record_store import RecordStore
from services.sample_data import seed_sample_data
from services.user_directory import UserDirectory
from utils.config import Settings


async def _print_dataset(progress: ProgressAggregator, users, dataset) -> None:
    """Print coverage for one dataset followed by each user's progress on it.

    Args:
        progress: Aggregator used for coverage and per-user progress.
        users: Registered user profiles.
        dataset: Dataset metadata.
    """
    coverage = await progress.dataset_coverage(dataset.id)
    print(f"Dataset: {dataset.name} ({dataset.id})")
    print(
        f"  records={coverage.total_records} annotated={coverage.annotated_records} "
        f"annotators={coverage.distinct_annotators} coverage={coverage.coverage_pct:.2f}%"
    )
    for user in users:
        user_progress = await progress.user_progress(user.username, dataset.id)
        if user_progress.annotated:
            print(
                f"  {user.username} [{user.role.value}]: "
                f"{user_progress.annotated}/{user_progress.total} ({user_progress.percentage:.2f}%)"
            )
    print()


async def main(seed: bool = False) -> None:
    """Open storage, optionally seed it, and print a progress report."""
    settings = Settings.from_env()
    dal = build_dal(settings)
    await dal.initialize()
    try:
        directory = UserDirectory(dal)
        records = RecordStore(dal)
        progress = ProgressAggregator(dal, records)
        if seed:
            await seed_sample_data(directory, records)

        users = await directory.list_users()
        for dataset in await records.list_datasets():
            await _print_dataset(progress, users, dataset)

        stats = await progress.platform_stats()
        print(
            f"Totals: datasets={stats.total_datasets} records={stats.total_records} "
            f"users={stats.total_users} annotations={stats.total_annotations}"
        )
    finally:
        await dal.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--seed", action="store_true", help="load sample data into empty storage first")
    args = parser.parse_args()
    asyncio.run(main(seed=args.seed))
