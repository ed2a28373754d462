"""
apiservice entry point
Builds the client from settings and fetches grades.
"""

import asyncio

from loguru import logger

from apiservice.bootstrap import build_api_service
from apiservice.datasource import GradeService
from apiservice.services.errors import ApiError, UnauthorizedError
from apiservice.settings import global_settings


async def main() -> None:
    """Main function"""
    logger.info(f"Starting apiservice against {global_settings.api_base_url}...")

    api = build_api_service(global_settings)
    grades = GradeService(api, global_settings)

    try:
        for grade in await grades.fetch_grades():
            logger.info(f"{grade.id}: {grade.name} ({grade.path})")

        # Second call is served from the cache when caching is enabled
        await grades.fetch_grades()

    except UnauthorizedError:
        logger.warning("No valid session, sign in first")
    except ApiError as e:
        logger.error(f"Failed to fetch grades: {e}")
    finally:
        logger.info("Closing resources...")
        await api.close()
        if api.cache is not None:
            await api.cache.close()

        logger.info("apiservice stopped")


if __name__ == "__main__":
    asyncio.run(main())
