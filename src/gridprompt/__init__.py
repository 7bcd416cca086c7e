"""Run a prompt template over every row of a table and collect structured answers.

This module provides:
- BatchScheduler: Concurrency- and rate-limited execution of row prompts
- Schema and prompt compilation from output column definitions
- Response normalization and flattening for tabular export
"""

from gridprompt.client import GeminiClient as GeminiClient
from gridprompt.client import GenerateResponse as GenerateResponse
from gridprompt.client import RemoteClient as RemoteClient
from gridprompt.client import call_with_deadline as call_with_deadline
from gridprompt.errors import CallError as CallError
from gridprompt.errors import CallErrorType as CallErrorType
from gridprompt.errors import GridPromptError as GridPromptError
from gridprompt.errors import JobValidationError as JobValidationError
from gridprompt.flatten import expand_record as expand_record
from gridprompt.flatten import flatten_record as flatten_record
from gridprompt.models import ErrorRow as ErrorRow
from gridprompt.models import JobInput as JobInput
from gridprompt.models import OutputColumn as OutputColumn
from gridprompt.models import ProcessedRow as ProcessedRow
from gridprompt.models import RunResult as RunResult
from gridprompt.models import RunState as RunState
from gridprompt.parse import parse_response as parse_response
from gridprompt.prompt import render_prompt as render_prompt
from gridprompt.rate_limit import FixedWindowRateLimiter as FixedWindowRateLimiter
from gridprompt.scheduler import BatchScheduler as BatchScheduler
from gridprompt.schema import compile_schema as compile_schema
from gridprompt.schema import infer_columns as infer_columns
