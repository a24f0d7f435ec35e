"""Unit tests for render-context construction (stamper.variables.resolver).

Tests cover:
- Project name sources (--name, environment, prompt)
- Value precedence: define > environment > prompt > default
- Coercion and validation of bool/int/choice/string values
- Interactive re-prompting and non-interactive failures
- Optional variables and undeclared defines
"""

from __future__ import annotations

import pytest

from stamper.errors import EXIT_VARIABLE, MissingVariableError, ValidationError
from stamper.manifest import (
    BoolVariable,
    ChoiceVariable,
    IntVariable,
    StringVariable,
    parse_manifest,
)
from stamper.variables.resolver import VariableResolver, coerce_value, env_key


def _resolver(variables=None, *, interactive=False, prompter=None, environ=None, now=None):
    manifest = parse_manifest({"variables": variables or []})
    return VariableResolver(
        manifest,
        interactive=interactive,
        prompter=prompter,
        environ={} if environ is None else environ,
        now=now,
    )


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


class TestCoerceValue:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("YES", True), ("1", True), ("on", True),
         ("false", False), ("no", False), ("0", False), ("Off", False), (True, True)],
    )
    def test_bool(self, raw, expected):
        assert coerce_value(BoolVariable(name="flag", type="bool"), raw) is expected

    @pytest.mark.unit
    def test_bool_invalid(self):
        with pytest.raises(ValidationError):
            coerce_value(BoolVariable(name="flag", type="bool"), "maybe")

    @pytest.mark.unit
    def test_int(self):
        variable = IntVariable(name="port", type="int", min=1, max=10)
        assert coerce_value(variable, " 7 ") == 7
        assert coerce_value(variable, 3) == 3

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["4.2", "0x10", "abc", "0", "11", True])
    def test_int_invalid(self, raw):
        with pytest.raises(ValidationError):
            coerce_value(IntVariable(name="port", type="int", min=1, max=10), raw)

    @pytest.mark.unit
    def test_choice(self):
        variable = ChoiceVariable(name="license", type="choice", choices=["MIT", "BSD"])
        assert coerce_value(variable, "BSD") == "BSD"
        with pytest.raises(ValidationError):
            coerce_value(variable, "GPL")

    @pytest.mark.unit
    def test_string_regex_full_match(self):
        variable = StringVariable(name="slug", regex="[a-z]+")
        assert coerce_value(variable, "abc") == "abc"
        with pytest.raises(ValidationError):
            coerce_value(variable, "abc1")

    @pytest.mark.unit
    def test_required_string_rejects_empty(self):
        with pytest.raises(ValidationError):
            coerce_value(StringVariable(name="x"), "")
        assert coerce_value(StringVariable(name="x", required=False), "") == ""

    @pytest.mark.unit
    def test_env_key(self):
        assert env_key("project-name") == "STAMPER_VALUE_PROJECT_NAME"
        assert env_key("use_docker") == "STAMPER_VALUE_USE_DOCKER"


# ---------------------------------------------------------------------------
# Project name
# ---------------------------------------------------------------------------


class TestProjectName:
    @pytest.mark.unit
    def test_from_argument(self):
        context = _resolver().resolve({}, "My Project")
        assert context["project-name"] == "my-project"
        assert context["crate_name"] == "my_project"

    @pytest.mark.unit
    def test_from_environment(self):
        context = _resolver(environ={"STAMPER_VALUE_PROJECT_NAME": "env-project"}).resolve({}, None)
        assert context["project_name"] == "env_project"

    @pytest.mark.unit
    def test_missing_when_not_interactive(self):
        with pytest.raises(MissingVariableError) as exc_info:
            _resolver().resolve({}, None)
        assert exc_info.value.variable == "project-name"
        assert exc_info.value.exit_status == EXIT_VARIABLE

    @pytest.mark.unit
    def test_prompted(self, scripted_prompter):
        prompter = scripted_prompter(project_names=["prompted"])
        context = _resolver(interactive=True, prompter=prompter).resolve({}, None)
        assert context["project-name"] == "prompted"

    @pytest.mark.unit
    def test_invalid_name_not_interactive(self):
        with pytest.raises(ValidationError):
            _resolver().resolve({}, "!!!")

    @pytest.mark.unit
    def test_invalid_name_reprompted(self, scripted_prompter):
        prompter = scripted_prompter(project_names=["good name"])
        context = _resolver(interactive=True, prompter=prompter).resolve({}, "---")
        assert context["project-name"] == "good-name"
        assert prompter.asked == ["project-name"]


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestPrecedence:
    VARIABLES = [{"name": "license", "default": "default-value"}]

    @pytest.mark.unit
    def test_define_beats_environment(self):
        resolver = _resolver(self.VARIABLES, environ={"STAMPER_VALUE_LICENSE": "env"})
        assert resolver.resolve({"license": "cli"}, "demo")["license"] == "cli"

    @pytest.mark.unit
    def test_environment_beats_default(self):
        resolver = _resolver(self.VARIABLES, environ={"STAMPER_VALUE_LICENSE": "env"})
        assert resolver.resolve({}, "demo")["license"] == "env"

    @pytest.mark.unit
    def test_default_when_not_interactive(self):
        assert _resolver(self.VARIABLES).resolve({}, "demo")["license"] == "default-value"

    @pytest.mark.unit
    def test_prompt_beats_default(self, scripted_prompter):
        prompter = scripted_prompter(answers={"license": ["typed"]})
        resolver = _resolver(self.VARIABLES, interactive=True, prompter=prompter)
        assert resolver.resolve({}, "demo")["license"] == "typed"

    @pytest.mark.unit
    def test_defined_variables_are_not_prompted(self, scripted_prompter):
        prompter = scripted_prompter()
        resolver = _resolver(self.VARIABLES, interactive=True, prompter=prompter)
        resolver.resolve({"license": "cli"}, "demo")
        assert prompter.asked == []

    @pytest.mark.unit
    def test_empty_answer_uses_default(self, scripted_prompter):
        prompter = scripted_prompter(answers={"license": [""]})
        resolver = _resolver(self.VARIABLES, interactive=True, prompter=prompter)
        assert resolver.resolve({}, "demo")["license"] == "default-value"


# ---------------------------------------------------------------------------
# Missing, optional and invalid values
# ---------------------------------------------------------------------------


class TestResolution:
    @pytest.mark.unit
    def test_required_missing(self):
        with pytest.raises(MissingVariableError) as exc_info:
            _resolver([{"name": "description"}]).resolve({}, "demo")
        assert exc_info.value.variable == "description"

    @pytest.mark.unit
    def test_optional_string_omitted(self):
        context = _resolver([{"name": "description", "required": False}]).resolve({}, "demo")
        assert "description" not in context

    @pytest.mark.unit
    def test_optional_bool_is_false(self):
        variables = [{"name": "use_docker", "type": "bool", "required": False}]
        assert _resolver(variables).resolve({}, "demo")["use_docker"] is False

    @pytest.mark.unit
    def test_values_are_coerced(self):
        variables = [
            {"name": "use_docker", "type": "bool", "default": False},
            {"name": "port", "type": "int", "default": 8000},
        ]
        context = _resolver(variables).resolve({"use_docker": "yes", "port": "9000"}, "demo")
        assert context["use_docker"] is True
        assert context["port"] == 9000

    @pytest.mark.unit
    def test_invalid_define_not_interactive(self):
        variables = [{"name": "license", "type": "choice", "choices": ["MIT", "BSD"]}]
        with pytest.raises(ValidationError) as exc_info:
            _resolver(variables).resolve({"license": "GPL"}, "demo")
        assert exc_info.value.variable == "license"

    @pytest.mark.unit
    def test_invalid_environment_value_not_interactive(self):
        variables = [{"name": "port", "type": "int", "min": 1, "max": 100}]
        resolver = _resolver(variables, environ={"STAMPER_VALUE_PORT": "1000"})
        with pytest.raises(ValidationError):
            resolver.resolve({}, "demo")

    @pytest.mark.unit
    def test_invalid_define_reprompted(self, scripted_prompter):
        variables = [{"name": "license", "type": "choice", "choices": ["MIT", "BSD"]}]
        prompter = scripted_prompter(answers={"license": ["BSD"]})
        resolver = _resolver(variables, interactive=True, prompter=prompter)
        assert resolver.resolve({"license": "GPL"}, "demo")["license"] == "BSD"
        assert prompter.asked == ["license"]

    @pytest.mark.unit
    def test_invalid_answer_reprompted(self, scripted_prompter):
        variables = [{"name": "slug", "regex": "^[a-z]+$"}]
        prompter = scripted_prompter(answers={"slug": ["Not Valid", "valid"]})
        resolver = _resolver(variables, interactive=True, prompter=prompter)
        assert resolver.resolve({}, "demo")["slug"] == "valid"
        assert prompter.asked == ["slug", "slug"]

    @pytest.mark.unit
    def test_undeclared_define_is_string(self):
        context = _resolver().resolve({"extra": "42"}, "demo")
        assert context["extra"] == "42"
        assert "extra" in context.template_values()

    @pytest.mark.unit
    @pytest.mark.parametrize("name", ["project-name", "project_name", "authors", "os-arch"])
    def test_define_cannot_override_builtin(self, name: str):
        with pytest.raises(ValidationError) as exc_info:
            _resolver().resolve({name: "x"}, "demo")
        assert exc_info.value.variable == name

    @pytest.mark.unit
    def test_builtins_present(self, fixed_now):
        context = _resolver(now=fixed_now).resolve({}, "demo", is_init=True)
        assert context["is_init"] is True
        assert context["generated_at"] == "2024-01-02T03:04:05+00:00"
        assert "project-name" in context
        assert "project-name" not in context.template_values()
