"""
Unit tests for output validation.

Covers:
  - ValidationResult success / failure / permanent / add_failure
  - is_retriable only when every failure is retryable
  - Composite validator: failures are the ordered concatenation of members'
  - Composite with no members succeeds
  - Sync, async and plain-callable validators
  - run_validator turns validator exceptions into permanent failures
  - ValidationErrorFixPrompt rendering and escaping
"""

import pytest

from sentinel.agent.validation import (
  FIX_OBJECTIVE,
  CompositeOutputValidator,
  FunctionOutputValidator,
  NoOpOutputValidator,
  OutputValidator,
  ValidationErrorFixPrompt,
  ValidationFailureType,
  ValidationResult,
  as_validator,
  run_validator,
)


class MinLength:
  def __init__(self, n: int):
    self.n = n

  def validate(self, context, output):
    if len(output) < self.n:
      return ValidationResult.failure(f"shorter than {self.n}")
    return ValidationResult.success()


class AsyncNoDigits:
  async def validate(self, context, output):
    if any(ch.isdigit() for ch in output):
      return ValidationResult.permanent("contains digits")
    return ValidationResult.success()


class Exploding:
  def validate(self, context, output):
    raise RuntimeError("validator bug")


@pytest.mark.unit
class TestValidationResult:
  def test_success(self):
    result = ValidationResult.success()
    assert result.is_successful
    assert not result.is_retriable
    assert result.messages == []

  def test_failure_is_retriable(self):
    result = ValidationResult.failure("a", "b")
    assert not result.is_successful
    assert result.is_retriable
    assert result.messages == ["a", "b"]

  def test_permanent_is_not_retriable(self):
    assert not ValidationResult.permanent("bad").is_retriable

  def test_mixed_is_not_retriable(self):
    result = ValidationResult.failure("a").add_failure("b", ValidationFailureType.PERMANENT)
    assert not result.is_retriable
    assert [f.type for f in result.failures] == [ValidationFailureType.RETRYABLE, ValidationFailureType.PERMANENT]


@pytest.mark.unit
class TestCompositeOutputValidator:
  @pytest.mark.asyncio
  async def test_concatenates_failures_in_order(self, run_context):
    first = MinLength(10)
    second = FunctionOutputValidator(lambda ctx, out: ValidationResult.failure("no greeting") if "hello" not in out else ValidationResult.success())
    composite = CompositeOutputValidator(first, second)

    result = await run_validator(composite, run_context, "hi")
    expected = (await run_validator(first, run_context, "hi")).failures + (await run_validator(second, run_context, "hi")).failures
    assert result.failures == expected
    assert result.messages == ["shorter than 10", "no greeting"]

  @pytest.mark.asyncio
  async def test_all_members_run_after_failure(self, run_context):
    calls = []

    def first(ctx, out):
      calls.append("first")
      return ValidationResult.failure("x")

    def second(ctx, out):
      calls.append("second")
      return ValidationResult.success()

    await run_validator(CompositeOutputValidator(first, second), run_context, "out")
    assert calls == ["first", "second"]

  @pytest.mark.asyncio
  async def test_empty_composite_succeeds(self, run_context):
    result = await run_validator(CompositeOutputValidator(), run_context, "anything")
    assert result.is_successful

  @pytest.mark.asyncio
  async def test_async_members(self, run_context):
    composite = CompositeOutputValidator(MinLength(3), AsyncNoDigits())
    result = await run_validator(composite, run_context, "a1")
    assert result.messages == ["shorter than 3", "contains digits"]
    assert not result.is_retriable

  @pytest.mark.asyncio
  async def test_success_when_all_pass(self, run_context):
    composite = CompositeOutputValidator(MinLength(3)).add_validator(AsyncNoDigits())
    assert len(composite.validators) == 2
    assert (await run_validator(composite, run_context, "hello")).is_successful


@pytest.mark.unit
class TestValidatorAdapters:
  def test_noop_is_output_validator(self):
    assert isinstance(NoOpOutputValidator(), OutputValidator)

  def test_as_validator_wraps_callables(self):
    def check(ctx, out):
      return ValidationResult.success()

    wrapped = as_validator(check)
    assert isinstance(wrapped, FunctionOutputValidator)
    assert wrapped.name == "check"

  def test_as_validator_passes_through_validators(self):
    validator = MinLength(1)
    assert as_validator(validator) is validator

  def test_as_validator_rejects_other_values(self):
    with pytest.raises(TypeError):
      as_validator(42)  # type: ignore[arg-type]

  @pytest.mark.asyncio
  async def test_raising_validator_is_permanent_failure(self, run_context):
    result = await run_validator(Exploding(), run_context, "out")
    assert not result.is_successful
    assert not result.is_retriable
    assert result.messages == ["Validator error: validator bug"]


@pytest.mark.unit
class TestValidationErrorFixPrompt:
  def test_render(self):
    prompt = ValidationErrorFixPrompt(validation_errors=["too short", "no greeting"], previous_output="hi")
    rendered = prompt.render()
    assert rendered.startswith("<validation_error_fix_prompt>")
    assert f"<objective>{FIX_OBJECTIVE}</objective>" in rendered
    assert "<validation_errors>too short, no greeting</validation_errors>" in rendered
    assert "<previously_generated_output>hi</previously_generated_output>" in rendered
    assert str(prompt) == rendered

  def test_escapes_markup(self):
    rendered = ValidationErrorFixPrompt(validation_errors=["<b>"], previous_output="a & b").render()
    assert "&lt;b&gt;" in rendered
    assert "a &amp; b" in rendered
