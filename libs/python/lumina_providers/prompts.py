"""Prompt templates shared by every provider."""

from __future__ import annotations

OUTLINE_PROMPT = """
Create a {genre} story with {page_count} distinct scenes based on: "{theme}".
For each scene, provide a descriptive visual prompt for an image generator and a short
caption (max 50 words). Also provide a title for the whole story.
Respond using the provided JSON schema with keys "title" and "pages"; every page has
"image_prompt" and "caption".
""".strip()

IMAGE_PROMPT = "Art style: {style}. {prompt}. High quality, detailed, vibrant colors."

VIDEO_PROMPT = "Cinematic Style: {style}. {prompt}"

REFINE_PROMPT = """
Rewrite the following image prompt so it produces a sharper, more detailed, higher
resolution illustration. Keep the subject and composition, add lighting, texture and
lens detail. Return only the rewritten prompt, no commentary.

Prompt: {prompt}
""".strip()

AD_COPY_PROMPT = """
You are a performance marketing copywriter. Write a short social ad for the product
"{product}" aimed at "{audience}".
Return JSON with keys: "headline" (max 8 words), "body" (max 40 words),
"call_to_action", "visual_prompt" (an authentic user-generated-content style photo
description for an image generator) and "hashtags" (up to 5).
""".strip()

CHARACTER_PROMPT = """
Design an original character from this description: "{description}".
Return JSON with keys: "name", "archetype", "backstory" (max 80 words), "traits"
(3 to 6 short traits) and "image_prompt" (a full-body character portrait description
for an image generator).
""".strip()

SPEECH_PROMPT = "Narrate warmly and clearly: {text}"
