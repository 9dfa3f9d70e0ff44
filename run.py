#!/usr/bin/python
"""
Top level script. Runs the zonal statistics and disaster matching pipeline
and writes its tables to the output folder.

"""
import logging
from os.path import expanduser, join

from hdx.api.configuration import Configuration
from hdx.facades.infer_arguments import facade
from hdx.utilities.errors_onexit import ErrorsOnExit

from zonal_disasters import ZonalDisasters

logger = logging.getLogger(__name__)

lookup = "zonal-disasters"


def main(output_folder: str = "") -> None:
    """Generate zonal statistics and disaster counts per region"""
    with ErrorsOnExit() as errors:
        configuration = Configuration.read()
        folder = output_folder or configuration["output_folder"]
        pipeline = ZonalDisasters(configuration, folder, errors)
        dataset_names = pipeline.get_data()
        logger.info(f"Number of datasets written: {len(dataset_names)}")


if __name__ == "__main__":
    print()
    logging.basicConfig()
    logging.getLogger().setLevel(logging.INFO)
    facade(
        main,
        hdx_read_only=True,
        hdx_site="prod",
        user_agent_config_yaml=join(expanduser("~"), ".useragents.yaml"),
        user_agent_lookup=lookup,
        project_config_yaml=join("config", "project_configuration.yaml"),
    )
