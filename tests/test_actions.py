"""
Orchestration boundary: every failure comes back as ErrorResult, never raised.
The model is replaced by a fake client returning canned JSON.
"""
import asyncio
import json

import pytest

from app.models import Diagnosis, ErrorResult, Treatment
from app.services import llm
from app.services.actions import handle_diagnose, handle_recommend

VALID_URI = "data:image/png;base64,AAAA"


@pytest.fixture
def model_reply(monkeypatch, fake_llm_client, make_completion):
    """Make the fake model answer with the given payload"""
    monkeypatch.setattr(llm, "llm_client", fake_llm_client)

    def _reply(payload):
        raw = payload if isinstance(payload, str) else json.dumps(payload)
        fake_llm_client.chat.completions.create.return_value = make_completion(raw)
        return fake_llm_client.chat.completions.create

    return _reply


class TestHandleDiagnose:
    def test_valid_reference_returns_diagnosis(self, model_reply):
        model_reply({
            "plantName": "Rose",
            "diseaseName": "Black Spot",
            "confidence": 0.91,
            "description": "Circular black spots with fringed margins.",
        })

        result = asyncio.run(handle_diagnose(VALID_URI))

        assert isinstance(result, Diagnosis)
        assert 0 <= result.confidence <= 1
        assert result.disease_name
        assert result.description

    def test_fenced_reply_is_accepted(self, model_reply):
        model_reply('```json\n{"diseaseName": "Rust", "confidence": 0.4, "description": "Orange pustules."}\n```')

        result = asyncio.run(handle_diagnose(VALID_URI))

        assert isinstance(result, Diagnosis)
        assert result.plant_name is None

    @pytest.mark.parametrize("payload", [
        {"diseaseName": "Rust", "confidence": 1.7, "description": "Orange pustules."},
        {"diseaseName": "", "confidence": 0.5, "description": "Orange pustules."},
        {"diseaseName": "Rust", "confidence": 0.5},
        "I cannot see a plant in this image.",
    ])
    def test_schema_violations_become_errors(self, model_reply, payload):
        model_reply(payload)

        result = asyncio.run(handle_diagnose(VALID_URI))

        assert isinstance(result, ErrorResult)
        assert result.error

    @pytest.mark.parametrize("uri", ["", "not-a-data-uri", "data:text/plain;base64,AAAA"])
    def test_malformed_reference_never_calls_model(self, model_reply, uri):
        create = model_reply({})

        result = asyncio.run(handle_diagnose(uri))

        assert result == ErrorResult(error="Invalid input: Invalid image data URI")
        create.assert_not_called()

    def test_service_failure(self, model_reply):
        create = model_reply({})
        create.side_effect = asyncio.TimeoutError()

        result = asyncio.run(handle_diagnose(VALID_URI))

        assert isinstance(result, ErrorResult)
        assert "did not respond" in result.error

    def test_unconfigured_service(self, monkeypatch):
        monkeypatch.setattr(llm, "llm_client", None)

        result = asyncio.run(handle_diagnose(VALID_URI))

        assert result == ErrorResult(error="Disease detection service not configured")

    def test_empty_exception_message_falls_back(self, monkeypatch):
        async def broken(_):
            raise RuntimeError()

        monkeypatch.setattr("app.services.disease_detection.diagnose_disease", broken)

        result = asyncio.run(handle_diagnose(VALID_URI))

        assert result == ErrorResult(error="An unknown error occurred during diagnosis.")


class TestHandleRecommend:
    @pytest.mark.parametrize("disease_name, symptoms", [
        ("", "yellow leaves"),
        ("Leaf Blight", ""),
        ("   ", "yellow leaves"),
        ("", ""),
    ])
    def test_missing_input_never_calls_model(self, model_reply, disease_name, symptoms):
        create = model_reply({})

        result = asyncio.run(handle_recommend(disease_name, symptoms))

        assert result.model_dump() == {"error": "Disease name and symptoms are required."}
        create.assert_not_called()

    def test_structured_reply_normalized(self, model_reply):
        create = model_reply({
            "chemicalTreatment": "Spray chlorothalonil.",
            "biologicalTreatment": "Apply Trichoderma.",
            "chemicalMedicines": [{"name": "Chlorothalonil", "hazardLevel": "high"}],
            "biologicalMedicines": [{"name": "Trichoderma harzianum", "hazardLevel": "low"}],
        })

        result = asyncio.run(handle_recommend("Leaf Blight", "brown spots"))

        assert isinstance(result, Treatment)
        assert result.chemical_medicines[0].name == "Chlorothalonil"
        prompt = create.call_args.kwargs["messages"][0]["content"][0]["text"]
        assert "Disease: Leaf Blight" in prompt
        assert "Symptoms: brown spots" in prompt

    def test_older_reply_shape_normalized(self, model_reply):
        model_reply({"treatmentRecommendation": "Remove infected leaves.", "suggestedMedicines": "Neem oil"})

        result = asyncio.run(handle_recommend("Leaf Blight", "brown spots"))

        assert isinstance(result, Treatment)
        assert result.general_recommendation == "Remove infected leaves."

    def test_unrecognized_shape(self, model_reply):
        model_reply({"advice": "water less"})

        result = asyncio.run(handle_recommend("Leaf Blight", "brown spots"))

        assert isinstance(result, ErrorResult)
        assert "Treatment response did not match" in result.error

    def test_unconfigured_service(self, monkeypatch):
        monkeypatch.setattr(llm, "llm_client", None)

        result = asyncio.run(handle_recommend("Leaf Blight", "brown spots"))

        assert result == ErrorResult(error="Treatment recommendation service not configured")

    def test_empty_reply_is_an_error(self, model_reply):
        model_reply({
            "chemicalTreatment": "",
            "biologicalTreatment": "",
            "chemicalMedicines": [],
            "biologicalMedicines": [],
        })

        result = asyncio.run(handle_recommend("Leaf Blight", "brown spots"))

        assert isinstance(result, ErrorResult)
        assert "Treatment response did not match" in result.error
