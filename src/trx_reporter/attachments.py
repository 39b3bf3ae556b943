"""
Relocation of test attachments into the ``<report>/In/<dir>`` layout.
"""

import os
import shutil
import uuid
from pathlib import Path
from typing import Iterable, Optional

from .logger_config import get_logger
from .trx import ResultFile, UnitTestResult

logger = get_logger(__name__)


def attachment_directory(output_path: str, relative_dir: str, cwd: Optional[str] = None) -> Path:
    """Directory receiving a result's attachments.

    ``results/out.trx`` with relative directory ``abc`` maps to
    ``<cwd>/results/out/In/abc``.
    """
    base = os.path.splitext(output_path)[0]
    return Path(cwd or "") / base / "In" / relative_dir


def relocate_attachments(
    result: UnitTestResult,
    attachments: Iterable[str],
    output_path: str,
    cwd: Optional[str] = None,
) -> Path:
    """Copy attachments next to the report and reference them from ``result``.

    Directory creation and copy failures are logged and otherwise ignored: the
    result keeps its outcome and still lists every attachment by base name.

    Returns:
        The attachment directory.
    """
    result.execution_id = result.execution_id or str(uuid.uuid4())
    result.relative_results_directory = result.relative_results_directory or result.execution_id

    target_dir = attachment_directory(output_path, result.relative_results_directory, cwd)
    logger.info(f'Creating directory for attachments "{target_dir}"')
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f'Error creating directory for attachments "{target_dir}": {e}')

    for attachment in attachments:
        name = os.path.basename(attachment)
        target = target_dir / name
        logger.info(f'Copy attachment "{name}" to "{target_dir}"')
        try:
            shutil.copyfile(attachment, target)
        except OSError as e:
            logger.error(f'Error copying attachment from "{attachment}" to "{target}": {e}')
        result.result_files.append(ResultFile(path=name))

    return target_dir
