"""
Recipe Search - Recipe Ingestion Script

This script loads raw recipes from JSON files into the recipe database.
Recipes are stored unenriched; run enrich.py afterwards to rewrite,
summarize and embed them.

Supports both single file and batch ingestion with duplicate detection.

Expected JSON (a list, or an object with a "recipes" list):
    [
        {
            "title": "chicken soup (v2)",
            "instructions": "Simmer the chicken...",
            "ingredients": ["chicken", "carrot", {"name": "celery"}],
            "cuisines": ["american"]
        }
    ]

Usage:
    python ingest.py [path] [--verbose | --quiet]

    path can be:
    - A single JSON file: python ingest.py data/recipes.json
    - A directory: python ingest.py data/   (processes all JSON files in folder)
    - Omitted: Uses default file

Examples:
    python ingest.py data/recipes.json       # Single file
    python ingest.py data/                   # All JSON files in folder
    python ingest.py --verbose               # Show debug output
    python ingest.py --quiet                 # Only show errors
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from tqdm import tqdm

from recipe_core import (
    DATABASE_URL,
    DEFAULT_RECIPES_PATH,
    SqlRecipeStore,
    create_session_factory,
    setup_logging,
)

load_dotenv()

# Configure module logger
logger = logging.getLogger(__name__)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def discover_recipe_files(input_path):
    """
    Discover JSON recipe files from a file path or directory.

    This enables batch ingestion: pass a folder and all JSON files are found.

    Args:
        input_path (str): Path to a JSON file or directory containing JSON files

    Returns:
        list[Path]: List of validated JSON file paths

    Raises:
        FileNotFoundError: If the path doesn't exist
        ValueError: If no JSON files are found
    """
    path = Path(input_path)

    if not path.exists():
        raise FileNotFoundError(f"Path not found: {input_path}")

    if path.is_file():
        if path.suffix.lower() != ".json":
            raise ValueError(f"File is not JSON: {input_path}")
        return [path]

    if path.is_dir():
        files = sorted(path.glob("*.json"))
        if not files:
            raise ValueError(f"No JSON files found in directory: {input_path}")
        logger.info(f"📁 Found {len(files)} JSON file(s) in {input_path}")
        for file in files:
            logger.info(f"   - {file.name}")
        return files

    raise ValueError(f"Path is neither a file nor a directory: {input_path}")


def _names(values):
    """Accept plain strings or objects with a "name" key."""
    names = []
    for value in values or []:
        if isinstance(value, dict):
            value = value.get("name")
        if isinstance(value, str) and value.strip():
            names.append(value.strip())
    return names


def load_recipes(file_path):
    """
    Load and normalize the recipes in one JSON file.

    Entries without a title are skipped with a warning.

    Args:
        file_path (Path): Path to the JSON file

    Returns:
        list[dict]: Recipes with title, instructions, ingredients and cuisines

    Raises:
        RuntimeError: If the file cannot be read or parsed
    """
    logger.info(f"📖 Loading recipes: {file_path}")

    try:
        with open(file_path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise RuntimeError(f"Failed to load recipes from {file_path}") from e

    if isinstance(data, dict):
        data = data.get("recipes", [])
    if not isinstance(data, list):
        raise RuntimeError(f"Expected a list of recipes in {file_path}")

    recipes = []
    for index, entry in enumerate(data):
        title = (entry.get("title") or "").strip() if isinstance(entry, dict) else ""
        if not title:
            logger.warning(f"Skipping entry {index} in {file_path.name}: no title")
            continue
        recipes.append({
            "title": title,
            "instructions": entry.get("instructions") or "",
            "ingredients": _names(entry.get("ingredients")),
            "cuisines": _names(entry.get("cuisines")),
        })

    logger.info(f"✓ Loaded {len(recipes)} recipes")
    return recipes


def store_recipes(recipe_store, recipes, source):
    """
    Insert recipes into the database, tagged with their source file.

    Args:
        recipe_store (SqlRecipeStore): Target store
        recipes (list[dict]): Normalized recipes from load_recipes()
        source (str): Source file path, used for duplicate detection

    Returns:
        int: Number of recipes stored
    """
    logger.info(f"💾 Storing recipes in database: {DATABASE_URL}")

    # One transaction per file: a failure leaves nothing tagged with this source
    try:
        recipe_store.add_recipes(tqdm(recipes, desc="Storing recipes", unit="recipe"), source=source)
    except Exception as e:
        raise RuntimeError(f"Failed to store recipes from {source}") from e

    logger.info(f"✓ Successfully stored {len(recipes)} recipes")
    return len(recipes)


# ============================================================================
# MAIN EXECUTION
# ============================================================================

def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Ingest JSON recipes into the recipe database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python ingest.py                        # Ingest default recipe file
  python ingest.py data/recipes.json      # Ingest single file
  python ingest.py data/                  # Ingest all JSON files in folder
  python ingest.py --verbose              # Show detailed output
  python ingest.py --quiet                # Only show errors
        """
    )
    parser.add_argument(
        "path",
        nargs="?",
        default=DEFAULT_RECIPES_PATH,
        help=f"Path to JSON file or directory (default: {DEFAULT_RECIPES_PATH})"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug output"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only show errors"
    )
    return parser.parse_args()


def main():
    """
    Main execution function with batch support.

    Workflow:
    1. Parse command line arguments (file or directory)
    2. Discover JSON files to process
    3. Check for already-ingested files (deduplication)
    4. Load and store each file (skip duplicates)
    5. Report batch statistics
    """
    args = parse_args()
    setup_logging(verbose=args.verbose, quiet=args.quiet)

    logger.info("=" * 70)
    logger.info("🍳 Recipe Search - Recipe Ingestion")
    logger.info("=" * 70)

    input_path = args.path
    logger.info(f"Input path: {input_path}")

    try:
        files = discover_recipe_files(input_path)

        recipe_store = SqlRecipeStore(create_session_factory())
        existing_sources = recipe_store.ingested_sources()
        if existing_sources:
            logger.info(f"📋 Already in database: {len(existing_sources)} source(s)")

        total_recipes = 0
        skipped = 0
        processed = 0

        for file_path in files:
            if str(file_path) in existing_sources:
                logger.warning(f"Skipping {file_path.name} (already ingested)")
                skipped += 1
                continue

            recipes = load_recipes(file_path)
            total_recipes += store_recipes(recipe_store, recipes, str(file_path))
            processed += 1

        logger.info("")
        logger.info("=" * 70)
        logger.info("✅ SUCCESS!")
        logger.info("=" * 70)
        logger.info("📊 Batch Statistics:")
        logger.info(f"   - Files processed: {processed}")
        logger.info(f"   - Files skipped (already ingested): {skipped}")
        logger.info(f"   - Total recipes: {total_recipes}")
        logger.info(f"   - Database location: {DATABASE_URL}")
        logger.info("")
        logger.info("💡 Next step: Run 'python enrich.py' to rewrite and embed your recipes!")
        logger.info("=" * 70)

    except FileNotFoundError as e:
        logger.error(f"❌ ERROR: {e}")
        logger.error("💡 Make sure your recipe file is in the correct location.")
        sys.exit(1)

    except ValueError as e:
        logger.error(f"❌ ERROR: {e}")
        sys.exit(1)

    except Exception as e:
        logger.error(f"❌ ERROR: {e}")
        logger.error("💡 Check the error message above for details.")
        sys.exit(1)


if __name__ == "__main__":
    main()
