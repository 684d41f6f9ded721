"""
Tests for the translation and proofreading phase runners against a real
sqlite store and scripted models.
"""
import pytest

from ai_providers import GenerationError, ModelSpec
from pipeline import (
    EmptyGenerationError,
    InvalidTransitionError,
    OutputRecord,
    ProofreadStatus,
    ProofreadingPhase,
    RecordSupersededError,
    TranslationPhase,
    TranslationStatus,
)
from pipeline.prompts import (
    APPLY_CHANGES_REQUEST,
    DEFAULT_PROOFREADING_INSTRUCTION,
    DEFAULT_TRANSLATION_INSTRUCTION,
    PROPOSE_CHANGES_REQUEST,
)

from conftest import PROPOSAL_JSON, default_handler

GPT5 = ModelSpec("openai", "gpt-5")
SOURCE = "<p>Hello, world!</p>"


def fresh_record(repository, output_id="out-fr", code="fr", name="French") -> OutputRecord:
    return repository.replace_output(OutputRecord(
        id=output_id, translation_id="doc-1", language_code=code, language_name=name,
    ))


def translated_record(repository, text="[French] translated") -> OutputRecord:
    return repository.replace_output(OutputRecord(
        id="out-fr",
        translation_id="doc-1",
        language_code="fr",
        language_name="French",
        translation_status=TranslationStatus.COMPLETED,
        translated_text=text,
    ))


class TestTranslationPhase:

    @pytest.mark.asyncio
    async def test_success(self, store, gateway, repository, translation, fake_script):
        record = fresh_record(repository)

        result = await TranslationPhase(store, gateway).run(record, SOURCE, GPT5)

        stored = repository.get_output("out-fr")
        assert result.translation_status == TranslationStatus.COMPLETED
        assert stored.translation_status == TranslationStatus.COMPLETED
        assert stored.translated_text == "[French] translated"
        assert stored.translation_output_tokens == 42
        assert stored.translation_duration_ms is not None
        assert stored.proofread_status == ProofreadStatus.PENDING

        call = fake_script.calls[0]
        assert call["system_prompt"] == DEFAULT_TRANSLATION_INSTRUCTION
        assert call["messages"][0].content == f"Translate to French. This is the text: {SOURCE}"

    @pytest.mark.asyncio
    async def test_caller_instruction(self, store, gateway, repository, translation, fake_script):
        record = fresh_record(repository)

        await TranslationPhase(store, gateway).run(record, SOURCE, GPT5, instruction="Marketing tone.")

        assert fake_script.calls[0]["system_prompt"] == "Marketing tone."

    @pytest.mark.asyncio
    async def test_generation_failure_marks_failed_and_reraises(
        self, store, gateway, repository, translation, fake_script
    ):
        def broken(messages, system, model):
            raise RuntimeError("provider exploded")

        fake_script.handler = broken
        record = fresh_record(repository)

        with pytest.raises(GenerationError):
            await TranslationPhase(store, gateway).run(record, SOURCE, GPT5)

        stored = repository.get_output("out-fr")
        assert stored.translation_status == TranslationStatus.FAILED
        assert stored.translated_text is None
        assert "provider exploded" in stored.error_message
        assert stored.proofread_status == ProofreadStatus.PENDING
        assert len(fake_script.calls) == 1

    @pytest.mark.asyncio
    async def test_empty_result_is_a_failure(self, store, gateway, repository, translation, fake_script):
        fake_script.handler = lambda messages, system, model: ""
        record = fresh_record(repository)

        with pytest.raises(EmptyGenerationError):
            await TranslationPhase(store, gateway).run(record, SOURCE, GPT5)

        stored = repository.get_output("out-fr")
        assert stored.translation_status == TranslationStatus.FAILED
        assert stored.translated_text is None

    @pytest.mark.asyncio
    async def test_superseded_record_is_left_alone(self, store, gateway, repository, translation, fake_script):
        record = fresh_record(repository, output_id="out-old")

        def rerun_meanwhile(messages, system, model):
            # A newer run replaces the record while this one is generating
            fresh_record(repository, output_id="out-new")
            return "late text"

        fake_script.handler = rerun_meanwhile

        with pytest.raises(RecordSupersededError):
            await TranslationPhase(store, gateway).run(record, SOURCE, GPT5)

        assert repository.get_output("out-old") is None
        newer = repository.get_output("out-new")
        assert newer.translation_status == TranslationStatus.PENDING
        assert newer.translated_text is None


class TestProofreadingPhase:

    @pytest.mark.asyncio
    async def test_success(self, store, gateway, repository, translation, fake_script):
        record = translated_record(repository)

        result = await ProofreadingPhase(store, gateway).run(record, SOURCE, GPT5)

        stored = repository.get_output("out-fr")
        assert result.proofread_status == ProofreadStatus.COMPLETED
        assert stored.proofread_status == ProofreadStatus.COMPLETED
        assert stored.translation_status == TranslationStatus.COMPLETED
        assert stored.translated_text == "[French] proofread"
        assert stored.proofread_original_translation == "[French] translated"
        assert stored.proofread_proposed_changes == [
            {"original": "Bonjour", "changes": "Salut", "reason": "More natural"}
        ]
        assert stored.proofread_output_tokens == 84
        assert stored.proofread_duration_ms is not None

    @pytest.mark.asyncio
    async def test_prompts_and_conversation(self, store, gateway, repository, translation, fake_script):
        record = translated_record(repository)

        await ProofreadingPhase(store, gateway).run(record, SOURCE, GPT5)

        propose, apply = fake_script.calls
        step1_prompt = propose["messages"][0].content
        assert step1_prompt.startswith(
            f"Language: French\n\nOriginal content:\n\n{SOURCE}\n\n"
            f"Translated content:\n\n[French] translated"
        )
        assert step1_prompt.endswith(PROPOSE_CHANGES_REQUEST)
        assert propose["system_prompt"] == DEFAULT_PROOFREADING_INSTRUCTION

        assert [(m.role, m.content) for m in apply["messages"]] == [
            ("user", step1_prompt),
            ("assistant", PROPOSAL_JSON),
            ("user", APPLY_CHANGES_REQUEST),
        ]

    @pytest.mark.asyncio
    async def test_unparsable_proposal_is_carried_forward(
        self, store, gateway, repository, translation, fake_script
    ):
        rambling = "The translation reads well; I would only soften the greeting."

        def handler(messages, system, model):
            if messages[-1].content.endswith(PROPOSE_CHANGES_REQUEST):
                return rambling
            return default_handler(messages, system, model)

        fake_script.handler = handler
        record = translated_record(repository)

        await ProofreadingPhase(store, gateway).run(record, SOURCE, GPT5)

        stored = repository.get_output("out-fr")
        assert stored.proofread_status == ProofreadStatus.COMPLETED
        assert stored.proofread_proposed_changes == rambling
        assert fake_script.calls[1]["messages"][1].content == rambling

    @pytest.mark.asyncio
    async def test_step_one_failure_skips_step_two(self, store, gateway, repository, translation, fake_script):
        def handler(messages, system, model):
            raise TimeoutError("took too long")

        fake_script.handler = handler
        record = translated_record(repository)

        with pytest.raises(GenerationError):
            await ProofreadingPhase(store, gateway).run(record, SOURCE, GPT5)

        stored = repository.get_output("out-fr")
        assert stored.proofread_status == ProofreadStatus.FAILED
        assert stored.translation_status == TranslationStatus.COMPLETED
        assert stored.translated_text == "[French] translated"
        assert stored.proofread_proposed_changes is None
        assert len(fake_script.calls) == 1

    @pytest.mark.asyncio
    async def test_step_two_failure_keeps_the_proposal(
        self, store, gateway, repository, translation, fake_script
    ):
        def handler(messages, system, model):
            if messages[-1].content == APPLY_CHANGES_REQUEST:
                raise RuntimeError("connection dropped mid-stream")
            return default_handler(messages, system, model)

        fake_script.handler = handler
        record = translated_record(repository)

        with pytest.raises(GenerationError):
            await ProofreadingPhase(store, gateway).run(record, SOURCE, GPT5)

        stored = repository.get_output("out-fr")
        assert stored.proofread_status == ProofreadStatus.FAILED
        assert stored.translated_text == "[French] translated"
        assert isinstance(stored.proofread_proposed_changes, list)
        assert "connection dropped" in stored.error_message

    @pytest.mark.asyncio
    async def test_requires_completed_translation(self, store, gateway, repository, translation, fake_script):
        record = fresh_record(repository)

        with pytest.raises(InvalidTransitionError):
            await ProofreadingPhase(store, gateway).run(record, SOURCE, GPT5)

        assert fake_script.calls == []
        assert repository.get_output("out-fr").proofread_status == ProofreadStatus.PENDING
