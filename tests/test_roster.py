"""Tests for src/roster.py."""

from pathlib import Path

import pytest

from src.models import Agent, ConversationConfig, ProviderKind
from src.roster import (
    MAX_AGENTS,
    ConfigInvalid,
    build_config,
    load_conversation_file,
    parse_agent_option,
    save_conversation_file,
    validate_config,
)

_EXAMPLE = Path(__file__).parent.parent / "conversations" / "coffee.md"


# --- parse_agent_option ---

def test_parse_agent_option_basic():
    agent = parse_agent_option("Alice:openai:An optimistic engineer.")
    assert agent == Agent("Alice", "An optimistic engineer.", ProviderKind.OPENAI)


def test_parse_agent_option_model_override():
    agent = parse_agent_option("Skeptic:openai/gpt-5-mini:Doubts everything")
    assert agent.provider is ProviderKind.OPENAI
    assert agent.model == "gpt-5-mini"


def test_parse_agent_option_persona_may_contain_colons():
    agent = parse_agent_option(" Bob : Gemini :Motto: measure twice")
    assert agent.name == "Bob"
    assert agent.provider is ProviderKind.GEMINI
    assert agent.persona == "Motto: measure twice"


@pytest.mark.parametrize("option", ["Alice:openai", "Alice", ""])
def test_parse_agent_option_wrong_shape(option):
    with pytest.raises(ConfigInvalid, match="Name:provider:persona"):
        parse_agent_option(option)


def test_parse_agent_option_unknown_provider():
    with pytest.raises(ConfigInvalid, match="unknown provider"):
        parse_agent_option("Carol:claude:Poet")


# --- validate_config / build_config ---

def test_validate_accepts_sample(sample_conversation, budgeted_conversation):
    validate_config(sample_conversation)
    validate_config(budgeted_conversation)


def test_validate_requires_topic(alice, bob):
    with pytest.raises(ConfigInvalid, match="topic"):
        validate_config(ConversationConfig(topic="   ", agents=(alice, bob)))


def test_validate_requires_two_agents(alice):
    with pytest.raises(ConfigInvalid, match="Between 2 and"):
        validate_config(ConversationConfig(topic="T", agents=(alice,)))


def test_validate_caps_agent_count():
    agents = tuple(Agent(f"A{i}", "p", ProviderKind.OPENAI) for i in range(MAX_AGENTS + 1))
    with pytest.raises(ConfigInvalid):
        validate_config(ConversationConfig(topic="T", agents=agents))


def test_validate_rejects_duplicate_names(alice):
    twin = Agent("Alice", "Another Alice.", ProviderKind.GEMINI)
    with pytest.raises(ConfigInvalid, match="Duplicate"):
        validate_config(ConversationConfig(topic="T", agents=(alice, twin)))


def test_validate_rejects_blank_persona(alice):
    mute = Agent("Bob", " ", ProviderKind.GEMINI)
    with pytest.raises(ConfigInvalid, match="persona"):
        validate_config(ConversationConfig(topic="T", agents=(alice, mute)))


@pytest.mark.parametrize("budget", [0, -2, True, 1.5])
def test_validate_rejects_bad_budget(alice, bob, budget):
    with pytest.raises(ConfigInvalid, match="max_turns_per_agent"):
        validate_config(ConversationConfig(topic="T", agents=(alice, bob), max_turns_per_agent=budget))


def test_build_config_normalises(alice):
    config = build_config(
        topic="  Cars?  ",
        agents=[alice, Agent(" Bob ", " Careful. ", ProviderKind.GEMINI)],
        instructions="   ",
        max_turns_per_agent=0,
    )
    assert config.topic == "Cars?"
    assert config.agents[1].name == "Bob"
    assert config.agents[1].persona == "Careful."
    assert config.instructions is None
    assert config.max_turns_per_agent is None
    assert isinstance(config.agents, tuple)


# --- conversation files ---

def test_load_example_conversation():
    config = load_conversation_file(_EXAMPLE)
    assert config.topic == "Is coffee good for you?"
    assert [a.name for a in config.agents] == ["Nutritionist", "Barista", "Skeptic"]
    assert config.agents[1].provider is ProviderKind.GEMINI
    assert config.agents[2].model == "gpt-5-mini"
    assert config.max_turns_per_agent == 3
    assert config.instructions.startswith("Keep every reply")


def test_save_then_load_preserves_setup(tmp_path: Path, alice):
    skeptic = Agent("Skeptic", "Doubts: everything.", ProviderKind.OPENAI, model="gpt-5-mini")
    original = build_config("Should cities ban cars?", [alice, skeptic], "Be brief.", 2)

    path = save_conversation_file(original, tmp_path / "setups" / "cars.md")

    assert path.exists()
    assert load_conversation_file(path) == original


def test_save_without_budget_or_instructions(tmp_path: Path, sample_conversation):
    path = save_conversation_file(sample_conversation, tmp_path / "cars.md")
    text = path.read_text(encoding="utf-8")
    assert "max_turns_per_agent" not in text
    assert load_conversation_file(path) == sample_conversation


def test_load_rejects_non_list_agents(tmp_path: Path):
    path = tmp_path / "bad.md"
    path.write_text("---\ntopic: T\nagents: Alice\n---\n", encoding="utf-8")
    with pytest.raises(ConfigInvalid, match="must be a list"):
        load_conversation_file(path)


def test_load_rejects_unknown_provider(tmp_path: Path):
    path = tmp_path / "bad.md"
    path.write_text(
        "---\ntopic: T\nagents:\n  - {name: A, persona: p, provider: openai}\n"
        "  - {name: B, persona: p, provider: llama}\n---\n",
        encoding="utf-8",
    )
    with pytest.raises(ConfigInvalid, match="'B'"):
        load_conversation_file(path)


def test_load_rejects_textual_budget(tmp_path: Path):
    path = tmp_path / "bad.md"
    path.write_text(
        "---\ntopic: T\nmax_turns_per_agent: three\nagents:\n"
        "  - {name: A, persona: p, provider: openai}\n  - {name: B, persona: p, provider: gemini}\n---\n",
        encoding="utf-8",
    )
    with pytest.raises(ConfigInvalid, match="integer"):
        load_conversation_file(path)


def test_load_rejects_null_agent_name(tmp_path: Path):
    path = tmp_path / "bad.md"
    path.write_text(
        "---\ntopic: T\nagents:\n  - {name: null, persona: p, provider: openai}\n"
        "  - {name: B, persona: p, provider: gemini}\n---\n",
        encoding="utf-8",
    )
    with pytest.raises(ConfigInvalid, match="needs a name"):
        load_conversation_file(path)


def test_load_rejects_null_persona(tmp_path: Path):
    path = tmp_path / "bad.md"
    path.write_text(
        "---\ntopic: T\nagents:\n  - {name: A, persona: null, provider: openai}\n"
        "  - {name: B, persona: p, provider: gemini}\n---\n",
        encoding="utf-8",
    )
    with pytest.raises(ConfigInvalid, match="persona"):
        load_conversation_file(path)
