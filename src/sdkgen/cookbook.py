"""Step-by-step instructions returned to the calling agent.

The text functions are pure. The migration workflow's "go back to the build
step" loop is modelled by run_remediation_loop, which always stops.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 5


def client_name_update_cookbook(old_name: str, new_name: str) -> str:
    """Instructions for renaming a model, operation or parameter via ``@@clientName``."""
    return f"""\
Follow the instructions below to rename {old_name} to {new_name} in client.tsp and the generated Java SDK.

1. Synchronize the TypeSpec source for the Java SDK.
   Find the directory in the workspace that contains 'tsp-location.yaml' and use the sync tool on it.

2. Find the declaration of {old_name}.
   Search the '.tsp' files under 'TempTypeSpecFiles' for the model, operation or operation parameter
   named {old_name} and note its fully qualified path, e.g.
   'Azure.Communication.MessagesService.OldModelName' for a model or
   'Azure.Communication.MessagesService.AdminOperations.sendMessage' for an operation.

3. Update client.tsp.
   Add a @@clientName decorator for the path found in step 2:

   @@clientName(<path of {old_name}>,
     "{new_name}",
     "java"
   );

4. Generate the Java SDK.
   Use the generate tool in the directory that contains 'tsp-location.yaml'.

5. Update downstream code.
   Update any hand-written code, samples or documentation that still refer to {old_name}.
"""


def migration_instructions() -> str:
    """Instructions for migrating an existing Java SDK to TypeSpec generation."""
    return f"""\
Follow the instructions below to migrate the Java SDK to generate from TypeSpec.

1. Initialize the Java SDK with the URL to its tspconfig.yaml file, using the init tool.

2. Find the SDK module and its pom.xml.
   Run "git status --porcelain" to find the new 'tsp-location.yaml'. The module directory is the
   directory containing it; pom.xml is in the same directory.

3. Build the Java SDK with the build tool.

4. Get the changelog for the Java SDK with the changelog tool.

5. Review the changelog from step 4.
   Do not read CHANGELOG.md in the module; it describes released versions only.
   Look for breaking changes that a rename would fix, e.g. a removed model "*Ip*" next to an added
   model "*IP*". If there are no such candidates, the migration is complete.

6. Apply each rename to the TypeSpec source with the update client name tool.

7. Go back to step 3. Stop after {DEFAULT_MAX_ITERATIONS} rounds even if differences remain, and
   report the remaining ones.
"""


async def run_remediation_loop(
    attempt: Callable[[int], Awaitable[bool]],
    *,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> int:
    """Run *attempt* until it reports no remaining differences.

    *attempt* receives the 1-based iteration number and returns True while
    differences remain. Returns the number of iterations performed, which
    never exceeds *max_iterations*.
    """
    if max_iterations < 1:
        msg = f"max_iterations must be at least 1, got {max_iterations}"
        raise ValueError(msg)

    for iteration in range(1, max_iterations + 1):
        if not await attempt(iteration):
            logger.info("No differences remain after %d iteration(s)", iteration)
            return iteration

    logger.warning("Stopped after %d iterations with differences remaining", max_iterations)
    return max_iterations
