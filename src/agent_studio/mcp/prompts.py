"""MCP prompt templates for common workflows."""

from agent_studio.mcp.server import mcp


@mcp.prompt()
def build_app(goal: str, project: str) -> str:
    """Generate a prompt to drive an agent build end to end."""
    return (
        f"I want the agent team to build the following in the '{project}' project:\n\n"
        f"{goal}\n\n"
        f"Please:\n"
        f"1. Use list_files to see what already exists\n"
        f"2. Call start_build with a goal that mentions the existing files worth keeping\n"
        f"3. Poll get_build_status until the build is completed, failed or cancelled\n"
        f"4. If it failed, explain which task failed and suggest a narrower goal\n"
        f"5. Finish with preview and summarize what the result does"
    )


@mcp.prompt()
def review_build(project: str) -> str:
    """Generate a prompt to review the last build of a project."""
    return (
        f"Please review the last build of the '{project}' project.\n\n"
        f"Use get_build_status with logs=100 to see what each agent did, "
        f"then read_file for every file the build created or updated.\n"
        f"Then provide:\n"
        f"1. Summary of the files produced\n"
        f"2. Whether the goal appears to be met\n"
        f"3. Inconsistencies between files (imports, ids, class names)\n"
        f"4. Concrete follow-up goals for another build"
    )


@mcp.prompt()
def refine_file(project: str, file_name: str, change: str) -> str:
    """Generate a prompt to change one file step by step."""
    return (
        f"I want to change '{file_name}' in the '{project}' project:\n\n"
        f"{change}\n\n"
        f"Use plan_file to break the change into steps, show me the steps, "
        f"then apply them one at a time with apply_plan_step. "
        f"Stop and report if a step fails."
    )
