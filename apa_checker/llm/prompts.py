from __future__ import annotations

SYSTEM_PROMPT = """You are an expert academic writing reviewer specializing in APA 7th edition style.
You review student and researcher manuscripts and report compliance problems.

Rules:
1. Respond with ONLY valid JSON, no markdown fences and no extra text
2. Quote document text exactly when asked for highlightText
3. Do not invent citations, sources or page numbers"""

CONTENT_PROMPT_TEMPLATE = """Analyze the following {document_type} excerpt for academic quality and APA compliance.

Focus on these aspects:
1. Academic tone and formality
2. Clarity and conciseness
3. Argument structure and logic
4. Evidence presentation
5. Transitions and flow
6. APA-specific writing conventions

Text to analyze:
\"\"\"
{text}
\"\"\"

For each issue, include a "highlightText" field with the EXACT phrase from the document that demonstrates the issue. Use this exact format:

{{
  "overallScore": 85,
  "issues": [
    {{
      "type": "tone",
      "severity": "minor",
      "description": "Consider using more formal language",
      "suggestion": "Replace casual phrases with academic alternatives",
      "highlightText": "a lot of people",
      "examples": ["instead of 'a lot of' use 'numerous' or 'substantial'"]
    }}
  ],
  "strengths": ["Clear thesis statement"],
  "recommendations": ["Add more transitional phrases between paragraphs"]
}}"""

STRUCTURE_PROMPT_TEMPLATE = """Analyze this academic document's structure and organization for APA compliance.

Document headings:
\"\"\"
{headings}
\"\"\"

Document text (first {excerpt_chars} characters):
\"\"\"
{text}
\"\"\"

Evaluate:
1. Logical flow and organization
2. APA heading hierarchy
3. Section completeness
4. Transition quality

Use this exact format:

{{
  "structureScore": 78,
  "issues": [
    {{
      "type": "hierarchy",
      "description": "Skip from Level 1 to Level 3 heading",
      "suggestion": "Add Level 2 heading or adjust current levels"
    }}
  ],
  "missingElements": ["Abstract", "Conclusion"],
  "recommendations": ["Add clear topic sentences to paragraphs"]
}}"""

CITATIONS_PROMPT_TEMPLATE = """Analyze these citations for accuracy and contextual appropriateness.

Document excerpt:
\"\"\"
{text}
\"\"\"

Citations found:
\"\"\"
{citations}
\"\"\"

Check for:
1. APA format accuracy
2. Citation-claim relationship
3. Source appropriateness
4. Missing citations where needed

Include "highlightText" for problematic citations and statements needing sources. Use this exact format:

{{
  "citations": [
    {{
      "text": "(Smith, 2023)",
      "highlightText": "(Smith, 2023)",
      "issues": ["Missing page number for direct quote"],
      "suggestions": ["Add page number (Smith, 2023, p. 45)"],
      "accuracy": "good"
    }}
  ],
  "missingCitations": [
    {{
      "description": "Statistics need source",
      "highlightText": "75% of students reported improvement"
    }}
  ],
  "overallQuality": "Needs improvement"
}}"""

FIX_PROMPT_TEMPLATE = """You are an APA writing coach helping a student improve their academic paper.

Issue to fix:
- Title: {title}
- Description: {description}
- Severity: {severity}
- Category: {category}

Context around the issue:
\"\"\"
{context}
\"\"\"

Use this exact format:

{{
  "explanation": "Why this issue matters for APA compliance",
  "steps": [
    "1. Specific action to take",
    "2. How to implement the fix"
  ],
  "examples": {{
    "before": "Current problematic text",
    "after": "Improved version"
  }},
  "tips": ["Additional advice for avoiding this issue"],
  "resources": ["APA 7th edition page references"]
}}"""
