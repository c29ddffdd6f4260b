"""
Sentinel City: AI outbreak narrative via Amazon Bedrock.

Given a ward's signals and disease counters, asks a Bedrock text model for a
short prediction, three prevention steps and a risk label. The rule engine
stays the source of truth for alert levels; this module only phrases prose.

Any failure (throttling, timeout, non-JSON or wrongly shaped reply) resolves
to FALLBACK_NARRATIVE so the dashboard keeps working.
"""

import copy
import json
import os
import re

import boto3
from botocore.config import Config

AWS_REGION         = os.environ.get('AWS_REGION_NAME',    'ap-south-1')
BEDROCK_MODEL_ID   = os.environ.get('BEDROCK_MODEL_ID',   'anthropic.claude-3-haiku-20240307-v1:0')
AI_TIMEOUT_SECONDS = int(os.environ.get('AI_TIMEOUT_SECONDS', '15'))

bedrock = boto3.client(
    'bedrock-runtime',
    region_name=AWS_REGION,
    config=Config(
        connect_timeout=AI_TIMEOUT_SECONDS,
        read_timeout=AI_TIMEOUT_SECONDS,
        retries={'max_attempts': 1},
    ),
)

RISK_LABELS = ('High', 'Medium', 'Low')

FALLBACK_NARRATIVE = {
    'prediction': 'Unable to analyze real-time data.',
    'prevention': ['Maintain general hygiene', 'Contact local health authorities'],
    'risk':       'Unknown',
}

PROMPT_TEMPLATE = """Context: You are a public health AI for "Sentinel City".
Current data for {ward_name}:
- Environmental signals: {signals}
- Clinical disease reports: {disease_data}

Task:
1. Analyze whether these numbers suggest a virus outbreak (e.g. Nipah, Dengue, Flu).
2. Give a 'prediction' (what is happening?).
3. Give exactly 3 'prevention' steps (what should citizens do?).
4. Assign a 'risk' level: High, Medium or Low.

IMPORTANT: Respond with valid JSON ONLY.
Format: {{"prediction": "string", "prevention": ["step1", "step2", "step3"], "risk": "string"}}
"""

_FENCE = re.compile(r'```(?:json)?', re.IGNORECASE)


def fallback_narrative():
    return copy.deepcopy(FALLBACK_NARRATIVE)


def build_prompt(ward_name, signals, disease_data):
    return PROMPT_TEMPLATE.format(
        ward_name=ward_name,
        signals=json.dumps(signals or {}, default=str),
        disease_data=json.dumps(disease_data or {}, default=str),
    )


def parse_narrative(text):
    """
    Parse the model reply into {prediction, prevention, risk}.
    Raises ValueError when the reply does not honour the contract.
    """
    data = json.loads(_FENCE.sub('', text or '').strip())
    if not isinstance(data, dict):
        raise ValueError('narrative is not a JSON object')

    prediction = data.get('prediction')
    prevention = data.get('prevention')
    risk       = str(data.get('risk', '')).strip().capitalize()

    if not isinstance(prediction, str) or not prediction.strip():
        raise ValueError('missing prediction')
    if not isinstance(prevention, list) or len(prevention) < 3 \
            or not all(isinstance(p, str) and p.strip() for p in prevention):
        raise ValueError('prevention must list at least 3 steps')
    if risk not in RISK_LABELS:
        raise ValueError(f'unexpected risk label {data.get("risk")!r}')

    return {
        'prediction': prediction.strip(),
        'prevention': [p.strip() for p in prevention[:3]],
        'risk':       risk,
    }


def invoke_model(prompt):
    resp = bedrock.converse(
        modelId=BEDROCK_MODEL_ID,
        messages=[{'role': 'user', 'content': [{'text': prompt}]}],
        inferenceConfig={'maxTokens': 512, 'temperature': 0.2},
    )
    blocks = resp['output']['message']['content']
    return ''.join(b.get('text', '') for b in blocks)


def generate_narrative(ward_name, signals, disease_data):
    """Never raises; returns the fallback narrative on any failure."""
    try:
        text = invoke_model(build_prompt(ward_name, signals, disease_data))
        return parse_narrative(text)
    except Exception as e:
        print(f'⚠️  Bedrock narrative failed for {ward_name}: {e} — using fallback')
        return fallback_narrative()
