"""MCP server config validation.

Checks the shape of config.mcpServers entries only. Commands are never executed
or probed; reachability is a runtime concern of the consuming editor.
"""

import logging

from .exceptions import MCPConfigError
from .quality import Finding
from .quality import FindingCode
from .quality import Severity
from .schema import CollectionConfig
from .schema import MCPServerConfig

logger = logging.getLogger(__name__)


def _check_server(name: str, server: MCPServerConfig) -> list[Finding]:
    findings = []

    if not isinstance(server.command, str) or not server.command.strip():
        findings.append(
            Finding(
                severity=Severity.ERROR,
                code=FindingCode.MCP_CONFIG_ERROR,
                message=f"MCP server '{name}': command must be a non-empty string",
            )
        )

    if not isinstance(server.optional, bool):
        findings.append(
            Finding(
                severity=Severity.ERROR,
                code=FindingCode.MCP_CONFIG_ERROR,
                message=f"MCP server '{name}': optional must be true or false, got {server.optional!r}",
            )
        )

    if not isinstance(server.args, list) or not all(isinstance(arg, str) for arg in server.args):
        findings.append(
            Finding(
                severity=Severity.WARNING,
                code=FindingCode.MCP_CONFIG_SHAPE,
                message=f"MCP server '{name}': args should be a list of strings",
            )
        )

    env = server.env
    if env is not None and (
        not isinstance(env, dict) or not all(isinstance(k, str) and isinstance(v, str) for k, v in env.items())
    ):
        findings.append(
            Finding(
                severity=Severity.WARNING,
                code=FindingCode.MCP_CONFIG_SHAPE,
                message=f"MCP server '{name}': env should map variable names to string values",
            )
        )

    return findings


def validate_mcp_servers(config: CollectionConfig | None) -> list[Finding]:
    """
    Validate every MCP server block in a collection config.

    Args:
        config: Collection config (None means nothing to check)

    Returns:
        Findings in server declaration order. MCPConfigError findings are Errors,
        MCPConfigShape findings are Warnings.
    """
    if config is None:
        return []

    findings: list[Finding] = []
    for name, server in config.mcp_servers.items():
        findings.extend(_check_server(name, server))

    logger.debug(f"Checked {len(config.mcp_servers)} MCP server(s): {len(findings)} finding(s)")
    return findings


def ensure_mcp_servers(config: CollectionConfig | None) -> list[Finding]:
    """Validate MCP servers, raising on blocking problems.

    Returns:
        Advisory (Warning) findings when nothing blocks

    Raises:
        MCPConfigError: If any server has an empty command or non-boolean optional flag
    """
    findings = validate_mcp_servers(config)
    errors = [finding for finding in findings if finding.is_error]
    if errors:
        raise MCPConfigError(errors, context={"servers": sorted(config.mcp_servers) if config else []})
    return findings
