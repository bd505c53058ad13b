# =============================================================================
# LeafCare API
# services/generators.py - Recommendation Generators
#
# Two interchangeable generators produce treatment content for a
# classification result:
# - TemplateRecommendationGenerator: deterministic canned plans
# - OpenAIRecommendationGenerator: delegated to a chat-completion model
# One of them is selected at startup by build_generator().
# =============================================================================

import re
import json
import time
import random
import logging
from typing import Optional, Dict, Any

import openai
from openai import OpenAI

from ..constants import (
    CLASS_HEALTHY,
    SEVERITY_LEVELS,
    SEVERITY_MILD,
    SEVERITY_MODERATE,
    SEVERITY_SEVERE,
    SEVERITY_THRESHOLDS,
    PRIORITY_LEVELS,
    DEFAULT_PRIORITY,
    PROMPT_VERSION,
    DEFAULT_SOURCE_RELIABILITY
)
from ..errors import (
    GenerationError,
    GenerationRateLimitedError,
    GenerationAuthError,
    GenerationUnavailableError
)
from ..utils import clamp

logger = logging.getLogger(__name__)


def severity_from_confidence(confidence: float) -> str:
    """
    Severity of a disease detection from classifier confidence.

    > 0.8 -> moderate, > 0.6 -> mild, otherwise severe.
    """
    if confidence > SEVERITY_THRESHOLDS[SEVERITY_MODERATE]:
        return SEVERITY_MODERATE
    if confidence > SEVERITY_THRESHOLDS[SEVERITY_MILD]:
        return SEVERITY_MILD
    return SEVERITY_SEVERE


def is_healthy_label(classification: str) -> bool:
    """Whole-word match, so 'Healthy leaf' is healthy but 'unhealthy' is not."""
    return CLASS_HEALTHY in re.split(r'[^a-z]+', (classification or '').lower())


def normalize_content(content: Dict[str, Any], confidence: float) -> Dict[str, Any]:
    """
    Coerce generator output into a storable recommendation.

    Clamps confidence and sourceReliability into [0, 1], replaces an
    unknown severity with the confidence-derived one, and unknown
    prevention priorities with the default priority.
    """
    content = dict(content)

    content['immediateActions'] = list(content.get('immediateActions') or [])
    content['treatmentSteps'] = list(content.get('treatmentSteps') or [])
    content['preventionMeasures'] = list(content.get('preventionMeasures') or [])
    content['additionalNotes'] = content.get('additionalNotes') or ''

    if content.get('severity') not in SEVERITY_LEVELS:
        content['severity'] = severity_from_confidence(confidence)

    try:
        content['confidence'] = clamp(float(content.get('confidence', confidence)))
    except (TypeError, ValueError):
        content['confidence'] = clamp(confidence)

    reliability = content.get('sourceReliability')
    try:
        reliability = float(DEFAULT_SOURCE_RELIABILITY if reliability is None else reliability)
    except (TypeError, ValueError):
        reliability = DEFAULT_SOURCE_RELIABILITY
    content['sourceReliability'] = clamp(reliability)

    measures = []
    for measure in content['preventionMeasures']:
        if isinstance(measure, dict):
            measure = dict(measure)
            if measure.get('priority') not in PRIORITY_LEVELS:
                measure['priority'] = DEFAULT_PRIORITY
            measures.append(measure)
    content['preventionMeasures'] = measures

    steps = [step for step in content['treatmentSteps'] if isinstance(step, dict)]
    for index, step in enumerate(steps, start=1):
        step.setdefault('step', index)
    content['treatmentSteps'] = steps

    return content


class RecommendationGenerator:
    """
    Contract shared by both generators.

    Subclasses implement generate() and health_check().
    """
    name = 'base'
    prompt_version = PROMPT_VERSION

    def generate(
        self,
        classification: str,
        confidence: float,
        additional_context: Optional[str] = None
    ) -> Dict[str, Any]:
        raise NotImplementedError

    def health_check(self) -> bool:
        raise NotImplementedError


# =============================================================================
# Template Generator
# =============================================================================

RECOVERY_TIMES = {
    SEVERITY_MILD: '1-3 weeks with proper treatment',
    SEVERITY_MODERATE: '3-6 weeks with consistent treatment',
    SEVERITY_SEVERE: '6-12 weeks with intensive treatment and possible plant replacement'
}

HEALTHY_PLAN = {
    'disease': 'Healthy Plant',
    'immediateActions': [
        'Continue current care routine',
        'Monitor plant regularly',
        'Maintain proper watering schedule'
    ],
    'treatmentSteps': [
        {
            'step': 1,
            'action': 'Maintain Current Care',
            'description': 'Continue with your current plant care routine as the plant appears healthy.',
            'materials': ['Regular watering tools', 'Fertilizer (if scheduled)'],
            'duration': 'Ongoing',
            'precautions': ['Avoid overwatering', 'Monitor for any changes']
        }
    ],
    'preventionMeasures': [
        {
            'category': 'General Care',
            'measure': 'Regular monitoring',
            'description': 'Check plant weekly for any signs of disease or stress',
            'frequency': 'Weekly',
            'priority': 'high'
        },
        {
            'category': 'Environmental Control',
            'measure': 'Maintain optimal conditions',
            'description': 'Ensure proper light, temperature, and humidity levels',
            'frequency': 'Daily',
            'priority': 'high'
        },
        {
            'category': 'Nutrition',
            'measure': 'Balanced fertilization',
            'description': 'Apply appropriate fertilizer according to plant needs and season',
            'frequency': 'Monthly',
            'priority': 'medium'
        }
    ],
    'additionalNotes': ('Your plant appears to be in good health. Continue with preventive '
                        'care to maintain its condition.'),
    'sourceReliability': 0.9,
    'estimatedRecoveryTime': 'Plant is already healthy'
}

DISEASE_PLAN = {
    'disease': 'Angular Leaf Spot',
    'immediateActions': [
        'Isolate affected plants immediately',
        'Remove all infected leaves using sterilized tools',
        'Improve air circulation around the plant',
        'Stop overhead watering immediately',
        'Dispose of infected plant material properly'
    ],
    'treatmentSteps': [
        {
            'step': 1,
            'action': 'Remove infected foliage',
            'description': ('Carefully remove all leaves showing signs of angular leaf spot using '
                            'sterilized pruning shears. Cut back to healthy tissue.'),
            'materials': ['Sterilized pruning shears', 'Rubbing alcohol', 'Disposal bags'],
            'duration': '30-45 minutes',
            'precautions': ['Wear gloves', 'Disinfect tools between cuts',
                            'Do not compost infected material']
        },
        {
            'step': 2,
            'action': 'Apply copper-based fungicide',
            'description': ('Spray remaining healthy foliage with copper-based fungicide according '
                            'to manufacturer instructions.'),
            'materials': ['Copper fungicide', 'Spray bottle or garden sprayer', 'Protective equipment'],
            'duration': '15-20 minutes',
            'precautions': ['Apply in evening to avoid leaf burn', 'Wear protective clothing',
                            'Follow label instructions']
        },
        {
            'step': 3,
            'action': 'Improve growing conditions',
            'description': ('Increase spacing between plants, ensure proper drainage, and improve '
                            'air circulation.'),
            'materials': ['Fan (if indoor)', 'Mulch', 'Drainage materials'],
            'duration': '1-2 hours',
            'precautions': ['Avoid overcrowding', 'Ensure good drainage']
        },
        {
            'step': 4,
            'action': 'Monitor and reapply treatment',
            'description': 'Monitor plant weekly and reapply fungicide every 7-14 days as needed.',
            'materials': ['Same as step 2'],
            'duration': '15 minutes per application',
            'precautions': ['Do not over-apply', 'Rotate fungicide types if needed']
        }
    ],
    'preventionMeasures': [
        {
            'category': 'Environmental Control',
            'measure': 'Improve air circulation',
            'description': ('Ensure adequate spacing between plants and use fans if necessary '
                            'to improve airflow'),
            'frequency': 'Maintain continuously',
            'priority': 'high'
        },
        {
            'category': 'Watering Management',
            'measure': 'Avoid overhead watering',
            'description': 'Water at soil level to keep leaves dry and reduce disease spread',
            'frequency': 'Every watering session',
            'priority': 'high'
        },
        {
            'category': 'Sanitation',
            'measure': 'Clean growing area',
            'description': 'Remove fallen leaves and debris regularly to reduce disease pressure',
            'frequency': 'Weekly',
            'priority': 'medium'
        },
        {
            'category': 'Plant Health',
            'measure': 'Avoid plant stress',
            'description': 'Maintain consistent watering and proper nutrition to keep plants strong',
            'frequency': 'Ongoing',
            'priority': 'medium'
        },
        {
            'category': 'Preventive Treatment',
            'measure': 'Seasonal fungicide application',
            'description': 'Apply preventive fungicide treatments during high-risk periods',
            'frequency': 'Seasonally',
            'priority': 'low'
        }
    ],
    'sourceReliability': 0.85
}


class TemplateRecommendationGenerator(RecommendationGenerator):
    """
    Deterministic generator used when no language model is configured.

    Args:
        latency: (min, max) seconds of simulated processing time
    """
    name = 'TemplateRecommendationGenerator'

    def __init__(self, latency=(1.0, 3.0)):
        self.latency = latency

    def generate(self, classification, confidence, additional_context=None):
        logger.info(
            f"Generating template recommendation for classification: "
            f"{classification} (confidence: {confidence})"
        )

        low, high = self.latency
        if high > 0:
            time.sleep(random.uniform(low, high))

        if is_healthy_label(classification):
            content = json.loads(json.dumps(HEALTHY_PLAN))
            content.update({
                'confidence': min(confidence + 0.05, 1.0),
                'severity': SEVERITY_MILD
            })
            return content

        severity = severity_from_confidence(confidence)
        context_note = f"Additional context: {additional_context}. " if additional_context else ''

        content = json.loads(json.dumps(DISEASE_PLAN))
        content.update({
            'confidence': min(confidence + 0.1, 1.0),
            'severity': severity,
            'additionalNotes': (
                'Angular leaf spot is a bacterial disease that thrives in warm, humid conditions. '
                f'{context_note}Early detection and treatment are crucial for successful '
                'management. Consider consulting a plant pathologist if symptoms persist after '
                '3-4 weeks of treatment. Avoid working with wet plants to prevent spread.'
            ),
            'estimatedRecoveryTime': RECOVERY_TIMES[severity]
        })
        return content

    def health_check(self):
        return True


# =============================================================================
# OpenAI Generator
# =============================================================================

SYSTEM_PROMPT = """You are an expert plant pathologist and agricultural consultant specializing in angular leaf spot disease and plant health management.

Your task is to provide comprehensive, actionable recommendations based on plant disease classification results.

You must respond with valid JSON that matches this exact structure:
{
  "disease": "string - Disease name in proper format",
  "confidence": number - Your confidence in recommendations (0-1),
  "severity": "mild" | "moderate" | "severe",
  "immediateActions": ["array", "of", "immediate", "actions"],
  "treatmentSteps": [
    {
      "step": 1,
      "action": "Action name",
      "description": "Detailed description",
      "materials": ["optional", "materials", "list"],
      "duration": "optional duration estimate",
      "precautions": ["optional", "safety", "precautions"]
    }
  ],
  "preventionMeasures": [
    {
      "category": "Category name",
      "measure": "Specific measure",
      "description": "Detailed description",
      "frequency": "How often to apply",
      "priority": "high" | "medium" | "low"
    }
  ],
  "additionalNotes": "Important additional information and warnings",
  "sourceReliability": number - Reliability score (0-1),
  "estimatedRecoveryTime": "Time estimate for recovery"
}

Provide practical, evidence-based recommendations that are safe and effective. Consider organic and chemical treatment options when appropriate. Always prioritize plant and human safety."""


DEFAULT_RECOVERY_TIMES = {
    SEVERITY_MILD: '1-2 weeks with proper care',
    SEVERITY_MODERATE: '2-4 weeks with consistent treatment',
    SEVERITY_SEVERE: '4-8 weeks with intensive treatment'
}


def confidence_band(confidence: float) -> str:
    if confidence >= 0.9:
        return 'High confidence detection'
    if confidence >= 0.7:
        return 'Moderate confidence detection'
    return 'Low confidence detection - proceed with caution'


def build_prompt(classification, confidence, additional_context=None):
    """User message embedding the classification result."""
    context_section = f"\n\nAdditional Context: {additional_context}" if additional_context else ''

    return f"""Plant Disease Analysis Results:
- Classification: {classification}
- AI Model Confidence: {confidence:.3f} ({confidence * 100:.1f}%)
- Indicated Severity Level: {confidence_band(confidence)}{context_section}

Please provide comprehensive treatment and prevention recommendations for this plant condition. Focus on:

1. Immediate actions needed to prevent spread
2. Step-by-step treatment protocol
3. Long-term prevention strategies
4. Environmental management recommendations
5. Monitoring and follow-up guidelines

Consider both organic and conventional treatment options where applicable. Ensure all recommendations are safe for home gardeners and commercially viable.

If this appears to be a healthy plant (classification indicates healthy), focus on preventive care and maintenance recommendations instead of treatment."""


class OpenAIRecommendationGenerator(RecommendationGenerator):
    """
    Generator backed by an OpenAI chat-completion model.

    Args:
        api_key: OpenAI API key
        model: Chat model name
        max_tokens: Completion token limit
        client: Pre-built client (tests inject a stub)
    """
    name = 'OpenAIRecommendationGenerator'
    TEMPERATURE = 0.3

    def __init__(self, api_key=None, model='gpt-3.5-turbo', max_tokens=1000, client=None):
        if client is None:
            if not api_key:
                raise ValueError(
                    'OpenAI API key not configured. Please set OPENAI_API_KEY environment variable.'
                )
            client = OpenAI(api_key=api_key)

        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        logger.info(f"OpenAI generator initialized with model: {self.model}")

    def generate(self, classification, confidence, additional_context=None):
        logger.info(
            f"Generating recommendation for classification: {classification} "
            f"(confidence: {confidence})"
        )
        start_time = time.perf_counter()

        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {'role': 'system', 'content': SYSTEM_PROMPT},
                    {'role': 'user', 'content': build_prompt(classification, confidence, additional_context)}
                ],
                max_tokens=self.max_tokens,
                temperature=self.TEMPERATURE,
                response_format={'type': 'json_object'}
            )
        except openai.RateLimitError as e:
            logger.error(f"OpenAI rate limit: {e}")
            raise GenerationRateLimitedError()
        except openai.AuthenticationError as e:
            logger.error(f"OpenAI authentication failed: {e}")
            raise GenerationAuthError()
        except openai.OpenAIError as e:
            logger.error(f"OpenAI request failed: {e}")
            raise GenerationUnavailableError()

        elapsed_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(f"OpenAI response received in {elapsed_ms}ms")

        choices = getattr(completion, 'choices', None) or []
        raw = choices[0].message.content if choices else None
        if not raw:
            raise GenerationError('Invalid response format from AI service')

        try:
            parsed = json.loads(raw)
        except ValueError:
            logger.error('Failed to parse OpenAI response as JSON')
            raise GenerationError('Invalid response format from AI service')

        if not isinstance(parsed, dict):
            raise GenerationError('Invalid response format from AI service')

        return self.validate_response(parsed, confidence)

    def validate_response(self, response, confidence):
        """
        Check required fields and fill defaults.

        Raises:
            GenerationError: disease, severity or immediateActions missing
        """
        if not response.get('disease') or not response.get('severity') or not response.get('immediateActions'):
            raise GenerationError('Incomplete recommendation generated')

        try:
            reported = float(response.get('confidence') or confidence)
        except (TypeError, ValueError):
            reported = confidence
        response['confidence'] = min(confidence, reported)

        content = normalize_content(response, confidence)

        if not content.get('estimatedRecoveryTime'):
            content['estimatedRecoveryTime'] = DEFAULT_RECOVERY_TIMES[content['severity']]

        return content

    def health_check(self):
        """Minimal live completion."""
        try:
            self.client.chat.completions.create(
                model=self.model,
                messages=[{'role': 'user', 'content': 'Test'}],
                max_tokens=1
            )
            return True
        except openai.OpenAIError as e:
            logger.warning(f"OpenAI health check failed: {e}")
            return False


def build_generator(config):
    """
    Pick the generator once at startup.

    The OpenAI generator is used only when an API key is configured and
    USE_MOCK_AI is off.
    """
    if config.get('OPENAI_API_KEY') and not config.get('USE_MOCK_AI'):
        return OpenAIRecommendationGenerator(
            api_key=config['OPENAI_API_KEY'],
            model=config.get('OPENAI_MODEL', 'gpt-3.5-turbo'),
            max_tokens=config.get('OPENAI_MAX_TOKENS', 1000)
        )

    logger.info("Using template recommendation generator")
    return TemplateRecommendationGenerator(latency=config.get('MOCK_AI_LATENCY', (0.0, 0.0)))
