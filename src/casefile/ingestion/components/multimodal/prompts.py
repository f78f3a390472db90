"""
Prompts du modele multimodal (transcription, analyse visuelle, extraction documentaire).
"""

AUDIO_TRANSCRIPTION_PROMPT = """You are a professional legal transcriptionist.

TASK: Transcribe and analyze this audio file for legal case documentation.

REQUIREMENTS:
1. Complete transcription: word-for-word, speakers identified as Speaker 1, Speaker 2, etc.
   Keep legal terminology, case references, dates, names and figures exactly as spoken.
2. Mark unclear or inaudible passages as [UNCLEAR] or [INAUDIBLE].
3. Note audio quality issues, background noise and interruptions.
4. Structure the transcript with speaker labels, paragraph breaks per topic and
   timestamp references where significant.
5. After the transcript, summarize the key legal points, important dates, names and references.
"""

VISUAL_ANALYSIS_PROMPT = """You are a professional legal document analyst with expertise in OCR and visual content analysis.

TASK: Analyze this {media_type}, extract all readable text (OCR) and provide a brief visual analysis
for legal case documentation.

REQUIREMENTS:
1. Text extraction: headers, body text, tables and forms, handwritten notes, signatures, stamps,
   legal citations, dates, names and case numbers. Keep the original formatting where possible.
2. If no readable text is found, or the text is minimal, describe the content instead: document
   type and layout, visual evidence, objects and scenes, official seals or markings.
3. Note readability issues, partial or obscured content, multiple pages in a single {media_type}.

{media_instructions}
"""

IMAGE_INSTRUCTIONS = "For images: provide comprehensive OCR and, if no text is found, a visual analysis of the entire image."
VIDEO_INSTRUCTIONS = (
    "For videos: analyze key frames and extract text from relevant scenes. If no text is found, "
    "describe the main visual content and how it changes throughout the video."
)

DOCUMENT_ANALYSIS_PROMPT = """You are a professional legal document analyst.

TASK: Extract and analyze the content of this {mime_type} document for legal case documentation.

REQUIREMENTS:
1. The document may be in any language. Detect the language, do not assume one.
   If it is neither English nor Arabic, translate the extracted content and the analysis to English.
2. First assess whether it is a legal document. If it is not, state it clearly, give a brief
   summary of its content and skip the legal analysis below.
3. Extract ALL content: text, structure, tables and lists, headers and footers, annotations.
4. Describe the document type and purpose, its legal significance, key legal terms,
   important dates, names and references.
"""

IMAGE_BUFFER_PROMPT = """You are a professional legal document and visual analyst.

TASK: Analyze this image extracted from a Word document (DOCX) for legal case documentation.

OUTPUT:
- Start with the extracted text (OCR), keeping structure where possible
- Then a list of identified objects/scenes, each with a short description and possible relevance
- If it is a legal document, add legal markings, seals or important visual features
- Note anything unclear or partially visible
"""

TEXT_PRESENCE_PROMPT = """Look at this {subject} and answer with ONLY "YES" or "NO":

Does this {subject} contain any clearly visible, readable text, numbers, or symbols that could be extracted by OCR?

- YES: documents, forms, signs, labels, license plates, handwritten notes
- NO: photos of people or scenes, diagrams without text, artwork, pure images

Answer only YES or NO."""

VISUAL_DESCRIPTION_PROMPT = """Analyze this {subject} and provide a factual description of ONLY what you can visually observe.

Do NOT make assumptions about language, script or text content. Focus on visual elements.

Describe:
1. Physical objects, vehicles, structures or people visible
2. The scene, setting or environment
3. Any visible damage, marks or physical evidence
4. Colors, shapes and spatial relationships
5. Any text, numbers or symbols that are clearly visible and readable

Provide a clear, objective description based solely on visual evidence."""

VIDEO_SUMMARY_PROMPT = """Based on these video frame analyses, provide a comprehensive summary of the video content:

{frame_analyses}

Describe what is visually observable only (objects, people, scenes, actions, visible evidence,
setting, clearly visible text or numbers). Do NOT make assumptions about language or script.
The summary is used for legal case analysis."""

TRANSLATE_TO_ENGLISH_PROMPT = """Translate the following text to English. Keep the structure and the section markers. Return only the translated text.

---
{text}"""


def visual_analysis_prompt(mime_type: str) -> str:
    if mime_type.startswith("video/"):
        return VISUAL_ANALYSIS_PROMPT.format(media_type="video", media_instructions=VIDEO_INSTRUCTIONS)
    return VISUAL_ANALYSIS_PROMPT.format(media_type="image", media_instructions=IMAGE_INSTRUCTIONS)


def document_analysis_prompt(mime_type: str) -> str:
    return DOCUMENT_ANALYSIS_PROMPT.format(mime_type=mime_type)
