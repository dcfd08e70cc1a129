"""Tool registry exposed to the assistant layer.

Maps tool names to async handlers. The registry is built once per process
from Settings and looked up by name; unknown names raise UnknownToolError.

Handlers return text. Step failures, timeouts and registry errors come back
as text so the agent can decide how to remediate; SpawnError and
RootNotFoundError propagate because the caller must fix its input first.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field

from sdkgen.changelog import changelog_against_latest
from sdkgen.config import Settings
from sdkgen.cookbook import client_name_update_cookbook, migration_instructions
from sdkgen.errors import SdkgenError
from sdkgen.pipeline import (
    TEMP_SPEC_DIR,
    GenerationPipeline,
    find_spec_source_dir,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[str]]


class UnknownToolError(SdkgenError):
    """No tool is registered under the requested name."""


@dataclasses.dataclass(frozen=True)
class Tool:
    """A named capability offered to the calling agent."""

    name: str
    title: str
    description: str
    handler: ToolHandler


def build_tool_registry(settings: Settings) -> dict[str, Tool]:
    """Build the name -> Tool mapping for all sdkgen tools."""
    pipeline = GenerationPipeline(settings)

    async def init_java_sdk(
        cwd: Annotated[str, Field(description="The absolute path to the workspace root")],
        tsp_config_url: Annotated[str, Field(description="The URL to the tspconfig.yaml file")],
    ) -> str:
        logger.info("Tool called: init_java_sdk")
        return (await pipeline.init(cwd, tsp_config_url)).text

    async def sync_java_sdk(
        cwd: Annotated[
            str, Field(description="The absolute path to the directory containing tsp-location.yaml")
        ],
    ) -> str:
        logger.info("Tool called: sync_java_sdk")
        return (await pipeline.sync(cwd)).text

    async def generate_java_sdk(
        cwd: Annotated[
            str, Field(description="The absolute path to the directory containing tsp-location.yaml")
        ],
    ) -> str:
        logger.info("Tool called: generate_java_sdk")
        source_dir = find_spec_source_dir(Path(cwd))
        if source_dir is None:
            return (
                f"No TypeSpec source found in {cwd} or its {TEMP_SPEC_DIR} directory. "
                "Synchronize the TypeSpec source for the Java SDK first."
            )
        return (await pipeline.generate(source_dir)).text

    async def build_java_sdk(
        module_directory: Annotated[
            str, Field(description="The absolute path to the directory of the Java SDK module")
        ],
        group_id: Annotated[str, Field(description="The group ID for the Java SDK")],
        artifact_id: Annotated[str, Field(description="The artifact ID for the Java SDK")],
    ) -> str:
        logger.info("Tool called: build_java_sdk")
        return (await pipeline.build(module_directory, group_id, artifact_id)).text

    async def clean_java_source(
        module_directory: Annotated[
            str, Field(description="The absolute path to the directory of the Java SDK module")
        ],
    ) -> str:
        logger.info("Tool called: clean_java_source")
        return (await pipeline.clean(module_directory)).text

    async def get_java_sdk_changelog(
        jar_path: Annotated[
            str,
            Field(
                description=(
                    "The absolute path to the JAR file of the Java SDK, "
                    "under the target directory of the module"
                )
            ),
        ],
        group_id: Annotated[str, Field(description="The group ID for the Java SDK")],
        artifact_id: Annotated[str, Field(description="The artifact ID for the Java SDK")],
    ) -> str:
        logger.info("Tool called: get_java_sdk_changelog")
        report = await changelog_against_latest(jar_path, group_id, artifact_id, settings=settings)
        return report.text

    async def update_client_name(
        old_name: Annotated[str, Field(description="The old client name to be updated")],
        new_name: Annotated[str, Field(description="The new client name to use")],
    ) -> str:
        logger.info("Tool called: update_client_name")
        return client_name_update_cookbook(old_name, new_name)

    async def instruction_migrate_typespec() -> str:
        logger.info("Tool called: instruction_migrate_typespec")
        return migration_instructions()

    tools = [
        Tool(
            "init_java_sdk",
            "Initialize Java SDK",
            "Initialize a Java SDK module from the URL to its tspconfig.yaml",
            init_java_sdk,
        ),
        Tool(
            "sync_java_sdk",
            "Sync Java SDK",
            "Synchronize/download the TypeSpec source for a Java SDK, "
            "from the configuration in tsp-location.yaml",
            sync_java_sdk,
        ),
        Tool(
            "generate_java_sdk",
            "Generate Java SDK",
            "Generate a Java SDK from the configuration in tsp-location.yaml. The TypeSpec source "
            f"must already be synchronized into '{TEMP_SPEC_DIR}'.",
            generate_java_sdk,
        ),
        Tool(
            "build_java_sdk",
            "Build Java SDK",
            "Build the Java SDK module for a groupId that starts with `com.azure`",
            build_java_sdk,
        ),
        Tool(
            "clean_java_source",
            "Clean Java Source",
            "Remove generated main, samples and test sources of a management-plane module",
            clean_java_source,
        ),
        Tool(
            "get_java_sdk_changelog",
            "Get Java SDK Changelog",
            "Compare a freshly built Java SDK jar with its latest stable release",
            get_java_sdk_changelog,
        ),
        Tool(
            "update_client_name",
            "Update Client Name",
            "Instructions to rename a model, operation or parameter in client.tsp and the "
            "generated Java SDK, e.g. MediaMessageContent.mediaUri to MediaMessageContent.mediaUrl",
            update_client_name,
        ),
        Tool(
            "instruction_migrate_typespec",
            "Migration Instructions",
            "Instructions for migrating a Java SDK to generate from TypeSpec",
            instruction_migrate_typespec,
        ),
    ]
    return {tool.name: tool for tool in tools}


async def dispatch(registry: dict[str, Tool], name: str, arguments: dict[str, Any]) -> str:
    """Invoke the tool registered as *name* with keyword *arguments*.

    Raises:
        UnknownToolError: If *name* is not registered.
    """
    tool = registry.get(name)
    if tool is None:
        known = ", ".join(sorted(registry))
        msg = f"Unknown tool {name!r}. Available tools: {known}"
        raise UnknownToolError(msg)
    return await tool.handler(**arguments)
