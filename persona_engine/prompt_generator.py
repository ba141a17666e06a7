"""
Prompt generator for the Persona Engine
"""
import json
from datetime import datetime, timezone
from textwrap import dedent
from typing import Any, Dict, Optional

from .models import CampaignContext, SourceContext

UNKNOWN = "Unknown"

SOCIAL_ENRICHMENT_SHAPE = dedent("""\
    {
      "enrichedFields": {
        "social_media_profiles": {
          "facebook": {"active": true, "frequency": "daily/weekly/monthly", "topics": ["topic1", "topic2"]},
          "linkedin": {"active": true, "frequency": "daily/weekly/monthly", "usage": "professional networking"},
          "other_platforms": ["platform1", "platform2"]
        },
        "professional_details": {
          "industry_experience": "description",
          "career_level": "entry/mid/senior/executive",
          "associations": ["association1", "association2"],
          "work_challenges": ["challenge1", "challenge2"]
        },
        "expanded_interests": ["interest1", "interest2", "interest3"],
        "community_involvement": ["organization1", "organization2"],
        "communication_preferences": {
          "preferred_channels": ["email", "phone", "text"],
          "formality_level": "casual/professional/formal",
          "response_time_expectation": "immediate/within hours/within days",
          "trust_factors": ["factor1", "factor2"]
        },
        "legal_profile": {
          "previous_legal_experience": "description",
          "legal_service_preferences": ["preference1", "preference2"],
          "decision_factors": ["factor1", "factor2"],
          "barriers_to_legal_help": ["barrier1", "barrier2"]
        }
      },
      "confidence": 0.85,
      "fieldsEnriched": ["social_media", "professional", "interests", "communication", "legal"],
      "insights": [
        "Key insight about this persona's likely behavior",
        "Important consideration for legal marketing to this persona"
      ]
    }""")

LEGAL_ENRICHMENT_SHAPE = dedent("""\
    {
      "additions": {
        "legal_motivations": ["motivation1", "motivation2"],
        "legal_barriers": ["barrier1", "barrier2"],
        "case_specific_concerns": ["concern1", "concern2"],
        "preferred_legal_communication": "description of how they prefer to communicate with lawyers",
        "decision_timeline": "description of how quickly/slowly they make legal decisions",
        "trust_factors_legal": ["factor1", "factor2"]
      },
      "insights": [
        "Key insight from documents about this persona type",
        "Important legal service preference derived from research"
      ],
      "legal_profile": {
        "likely_legal_experience": "description",
        "service_preferences": ["preference1", "preference2"],
        "communication_style_legal": "formal/casual/consultative",
        "urgency_perception": "high/medium/low"
      },
      "confidence_delta": 0.15
    }""")

GENERATION_SHAPE = dedent("""\
    [
      {
        "name": "realistic name appropriate for demographics",
        "age": number_from_source_data,
        "gender": "from_demographic_data",
        "location": "City, State from geographic data",
        "bio": "background based on source patterns with [Source: X] citations",
        "motivations": ["array of motivations from source data"],
        "barriers": ["array of barriers from source data"],
        "personality": {
          "openness": "very_low|low|moderate|high|very_high",
          "conscientiousness": "very_low|low|moderate|high|very_high",
          "extraversion": "very_low|low|moderate|high|very_high",
          "agreeableness": "very_low|low|moderate|high|very_high",
          "neuroticism": "very_low|low|moderate|high|very_high"
        },
        "communication_style": "style based on source insights",
        "example_quote": "quote reflecting this person's authentic voice",
        "data_sources": ["list of source files/categories used for this persona"],
        "confidence_score": number_0_to_100_based_on_source_data_quality
      }
    ]""")

QUICK_PERSONA_SHAPE = dedent("""\
    {
      "name": "realistic first name",
      "bio": "brief realistic background",
      "communication_style": "how they naturally communicate",
      "motivations": ["why they might seek legal help"],
      "barriers": ["main concerns"],
      "case_type": "type of legal issue",
      "example_quote": "something they might say"
    }""")

RESEARCH_SYSTEM_MESSAGE = (
    "You are a research analyst providing factual, cited information for legal marketing strategy. "
    "Only provide information that can be verified from authoritative sources. "
    "Include proper citations and source URLs."
)


def format_value(value: Any, default: str = UNKNOWN) -> str:
    """Render a persona attribute for a prompt; lists become comma-separated text."""
    if value is None or value == "" or value == []:
        return default
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if isinstance(value, dict):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _campaign_block(campaign: Optional[CampaignContext]) -> str:
    matter = campaign.matter if campaign and campaign.matter else "General legal services"
    keywords = campaign.keywords if campaign and campaign.keywords else "legal assistance"
    target = campaign.target_description if campaign and campaign.target_description else "General population"
    return f"Matter: {matter}\nKeywords: {keywords}\nTarget Description: {target}"


class PromptGenerator:
    """Prompt generator for persona generation, enrichment and chat."""

    @staticmethod
    def persona_block(persona: Dict[str, Any]) -> str:
        return "\n".join([
            f"Name: {format_value(persona.get('name'))}",
            f"Age: {format_value(persona.get('age'))}",
            f"Location: {format_value(persona.get('location'))}",
            f"Occupation: {format_value(persona.get('occupation'))}",
            f"Education: {format_value(persona.get('education'))}",
            f"Income: {format_value(persona.get('income'))}",
            f"Interests: {format_value(persona.get('interests'))}",
            f"Bio: {format_value(persona.get('bio'), 'None provided')}",
        ])

    @staticmethod
    def social_enrichment_prompt(persona: Dict[str, Any], campaign: Optional[CampaignContext]) -> str:
        """
        Stage A prompt: social media presence, professional background, interests,
        communication preferences and legal attitudes for one persona.
        """
        traits = json.dumps(persona, ensure_ascii=False, indent=2, default=str)
        header = dedent("""\
            You are a persona enrichment specialist. Your task is to enrich the following persona with realistic social media presence, professional background, interests, affiliations, and communication preferences.

            ORIGINAL PERSONA:
        """)
        requirements = dedent("""\

            ENRICHMENT REQUIREMENTS:
            Based on the persona's basic information and the legal campaign context, enrich this persona with:

            1. SOCIAL MEDIA PRESENCE:
               - Which platforms they likely use (Facebook, LinkedIn, Twitter, Instagram, TikTok, etc.)
               - Frequency of use and engagement style
               - Topics they typically post/share about
               - Privacy settings preferences

            2. PROFESSIONAL BACKGROUND:
               - Industry experience and career trajectory
               - Professional associations or unions
               - Work-related challenges and goals
               - Leadership roles or team positions

            3. INTERESTS & AFFILIATIONS:
               - Hobbies and recreational activities
               - Community involvement (volunteer work, local organizations)
               - Political leanings (if relevant to legal matter)
               - Religious or cultural affiliations
               - Consumer preferences and brand loyalties

            4. COMMUNICATION PREFERENCES:
               - Preferred communication channels (email, phone, text, social media)
               - Response time expectations
               - Formality level preference
               - Trust-building factors
               - Information consumption habits (news sources, research methods)

            5. LEGAL-SPECIFIC INSIGHTS:
               - Likely legal concerns or experiences
               - Attitude toward legal system and lawyers
               - Decision-making process for legal services
               - Barriers to seeking legal help
               - Preferred legal service features

            RESPONSE FORMAT:
            Return a JSON object with this structure:
        """)
        footer = dedent("""\

            Make the enrichment realistic and consistent with the persona's demographic profile. Consider how their age, location, occupation, and education level would influence their digital behavior, professional life, and legal service preferences.

            Base the enrichment on realistic patterns for someone of their profile, but make it specific and actionable for legal marketing purposes.""")

        return (
            header
            + PromptGenerator.persona_block(persona)
            + f"\nExisting traits: {traits}\n\nLEGAL CAMPAIGN CONTEXT:\n"
            + _campaign_block(campaign)
            + "\n"
            + requirements
            + SOCIAL_ENRICHMENT_SHAPE
            + "\n"
            + footer
        )

    @staticmethod
    def source_context_summary(source_context: SourceContext, per_category: int = 3, width: int = 150) -> str:
        summary = f"Total source documents: {source_context.total_sources}\n\n"
        for category, items in source_context.categories().items():
            if not items:
                continue
            summary += f"{category.upper()} ({len(items)} items):\n"
            for item in items[:per_category]:
                summary += f"- {item.content[:width]}...\n"
            summary += "\n"
        return summary

    @staticmethod
    def legal_enrichment_prompt(
        persona: Dict[str, Any],
        campaign: Optional[CampaignContext],
        source_context: SourceContext,
    ) -> str:
        """Stage B prompt: asks only for legal-specific additions grounded in the supplied excerpts."""
        traits = json.dumps(persona, ensure_ascii=False, indent=2, default=str)
        header = dedent("""\
            You are a legal marketing persona enrichment specialist. Your task is to enhance an existing persona with insights from legal documents and research data, specifically for the legal campaign context.

            EXISTING PERSONA:
        """)
        objectives = dedent("""\
            ENRICHMENT OBJECTIVES:
            1. Add legal-specific motivations and barriers based on the document analysis
            2. Enhance communication preferences with legal service context
            3. Add case-specific concerns and decision factors
            4. Include document-derived insights about legal service preferences
            5. Update persona with campaign-relevant behavioral patterns

            RESPONSE FORMAT - Return ONLY valid JSON:
        """)
        footer = (
            "\n\nBase the enrichment specifically on the provided legal documents and research. "
            "Make it actionable for legal marketing to this persona type. "
            "Keep the original persona intact and only ADD new legal-specific insights."
        )
        return (
            header
            + PromptGenerator.persona_block(persona)
            + f"\nCurrent traits: {traits}\n\nLEGAL CAMPAIGN CONTEXT:\n"
            + _campaign_block(campaign)
            + "\n\nAVAILABLE DATA FOR ENRICHMENT:\n"
            + PromptGenerator.source_context_summary(source_context)
            + objectives
            + LEGAL_ENRICHMENT_SHAPE
            + footer
        )

    @staticmethod
    def format_source_context(source_context: SourceContext, width: int = 300) -> str:
        titles = {
            "demographic_data": "DEMOGRAPHIC DATA",
            "social_insights": "SOCIAL INSIGHTS",
            "consumer_behavior": "CONSUMER BEHAVIOR DATA",
            "client_data": "CLIENT DATA",
        }
        formatted = ""
        for category, items in source_context.categories().items():
            if not items:
                continue
            formatted += f"\n{titles[category]}:\n"
            for item in items:
                formatted += f"[{item.metadata.get('source', 'unknown')}] {item.content[:width]}...\n"
        return formatted or "No specific source data available - generation may be limited."

    @staticmethod
    def generation_prompt(campaign: CampaignContext, source_context: SourceContext, persona_count: int) -> str:
        """Prompt for exactly `persona_count` personas as a JSON array with inline citations."""
        return (
            dedent("""\
                You are an expert at creating realistic consumer personas for legal advertising campaigns based ONLY on provided data sources.

                CRITICAL REQUIREMENTS:
                - Generate EXACTLY {count} distinct personas
                - Base ALL persona traits on the provided source data below
                - Include specific citations for each trait using [Source: source_name]
                - Do NOT create any traits not found in the source data
                - If insufficient data exists for a trait, omit it rather than fabricate it

                CAMPAIGN DETAILS:
                - Case Type: {matter}
                - Target Audience: {target}
                - Keywords: {keywords}

                SOURCE DATA AVAILABLE:
            """).format(
                count=persona_count,
                matter=campaign.matter,
                target=campaign.target_description,
                keywords=campaign.keywords,
            )
            + PromptGenerator.format_source_context(source_context)
            + dedent("""

                PERSONA REQUIREMENTS:
                Each persona must be a complete, realistic individual with traits traceable to the source data above.

                REQUIRED JSON STRUCTURE - return ONLY valid JSON array:
            """)
            + GENERATION_SHAPE
            + f"\n\nGenerate {persona_count} evidence-based personas now:"
        )

    @staticmethod
    def chat_system_prompt(persona: Dict[str, Any]) -> str:
        name = persona.get("name") or "AI Assistant"
        quote = persona.get("example_quote")
        example = f'Example of how you speak: "{quote}"' if quote else ""
        return dedent("""\
            You are {name}.

            BACKGROUND: {bio}

            YOUR CHARACTERISTICS:
            - Motivations: {motivations}
            - Main Concerns: {barriers}
            - Communication Style: {style}
            - Case Type: {case_type}

            CRITICAL INSTRUCTIONS:
            1. Stay completely in character as {name} throughout the conversation
            2. Respond authentically based on your background and concerns
            3. Use your specified communication style consistently
            4. Remember you are someone who might need legal help
            5. Respond as a real person would, not as an AI assistant
            6. Keep responses conversational and natural, typically 1-3 sentences
            7. Show emotion and personality that matches your character

            {example}

            Never break character or mention that you are an AI. You are {name}, and this is a real conversation.""").format(
            name=name,
            bio=format_value(persona.get("bio"), "None provided"),
            motivations=format_value(persona.get("motivations")),
            barriers=format_value(persona.get("barriers")),
            style=format_value(persona.get("communication_style")),
            case_type=format_value(persona.get("case_type")),
            example=example,
        )

    @staticmethod
    def quick_persona_prompt(description: str) -> str:
        return (
            f"Create a realistic persona for chat based on this description: {description}\n\n"
            "Return ONLY JSON:\n"
            + QUICK_PERSONA_SHAPE
        )

    # ---------- Research topic prompts ----------

    @staticmethod
    def demographics_prompt(case_type: str, target_description: str) -> str:
        return dedent("""\
            Research demographic data and statistics for legal cases involving {case_type}.

            Target audience: {target_description}

            Find specific data on:
            1. Age demographics most affected
            2. Income levels and socioeconomic patterns
            3. Geographic distribution
            4. Gender patterns if relevant
            5. Education levels
            6. Employment status patterns

            Provide structured JSON with sources:
            {{
              "age_demographics": {{"pattern": "description", "source": "URL"}},
              "income_patterns": {{"pattern": "description", "source": "URL"}},
              "geographic_data": {{"pattern": "description", "source": "URL"}},
              "education_levels": {{"pattern": "description", "source": "URL"}},
              "key_statistics": [{{"stat": "description", "source": "URL"}}],
              "research_quality": "high|medium|low",
              "limitations": ["any data gaps or limitations"]
            }}

            Only include factual, cited information from authoritative sources.""").format(
            case_type=case_type, target_description=target_description
        )

    @staticmethod
    def social_insights_prompt(keywords: str) -> str:
        timestamp = datetime.now(timezone.utc).isoformat()
        return dedent("""\
            Search recent discussions on Reddit, X (Twitter), Facebook about: {keywords}

            Focus on authentic consumer experiences and sentiment:
            1. Common pain points and frustrations
            2. Objections or skepticism toward legal action
            3. Emotional language patterns
            4. Trust factors and credibility concerns
            5. Communication preferences
            6. Past experiences with similar legal issues

            Output structured JSON with sources:
            {{
              "pain_points": [{{"point": "description", "frequency": "high|medium|low", "source": "platform"}}],
              "objections": [{{"objection": "description", "frequency": "high|medium|low", "source": "platform"}}],
              "emotional_tone": [{{"emotion": "angry|frustrated|hopeful|etc", "context": "description"}}],
              "trust_factors": [{{"factor": "what builds credibility", "importance": "high|medium|low"}}],
              "communication_preferences": [{{"channel": "phone|email|text", "preference_level": "high|medium|low"}}],
              "example_quotes": [{{"quote": "actual quote", "platform": "source", "context": "situation"}}],
              "research_timestamp": "{timestamp}"
            }}

            Only include real, verifiable social media insights with proper attribution.""").format(
            keywords=keywords, timestamp=timestamp
        )

    @staticmethod
    def legal_trends_prompt(case_type: str) -> str:
        return dedent("""\
            Research current legal trends and statistics for {case_type} cases:

            Find data on:
            1. Recent settlement amounts and patterns
            2. Success rates and case outcomes
            3. Typical case timelines
            4. Common legal challenges
            5. Recent regulatory changes
            6. Industry response patterns

            Provide structured JSON:
            {{
              "settlement_patterns": {{"range": "description", "trends": "description", "source": "URL"}},
              "success_rates": {{"rate": "percentage", "timeframe": "description", "source": "URL"}},
              "case_timelines": {{"average": "duration", "factors": "description", "source": "URL"}},
              "legal_challenges": [{{"challenge": "description", "frequency": "high|medium|low"}}],
              "recent_developments": [{{"development": "description", "date": "YYYY-MM", "source": "URL"}}],
              "data_reliability": "high|medium|low"
            }}

            Focus on authoritative legal sources and recent data only.""").format(case_type=case_type)

    @staticmethod
    def consumer_behavior_prompt(case_type: str, keywords: str) -> str:
        return dedent("""\
            Research consumer behavior patterns related to {case_type} and {keywords}:

            Investigate:
            1. Decision-making factors for legal action
            2. Information-seeking behavior
            3. Preferred communication channels
            4. Timing of legal consultations
            5. Barriers to taking legal action
            6. Trust-building factors

            Output JSON:
            {{
              "decision_factors": [{{"factor": "description", "importance": "high|medium|low", "source": "study/survey"}}],
              "information_seeking": {{"primary_channels": [], "timing": "description", "sources": []}},
              "communication_preferences": {{"preferred_initial_contact": "method", "follow_up_preferences": []}},
              "timing_patterns": {{"typical_delay": "timeframe", "peak_contact_times": []}},
              "barriers": [{{"barrier": "description", "frequency": "high|medium|low", "solutions": []}}],
              "trust_builders": [{{"factor": "description", "effectiveness": "high|medium|low"}}],
              "research_methodology": "description of how data was gathered"
            }}

            Only include research from credible consumer behavior studies and surveys.""").format(
            case_type=case_type, keywords=keywords
        )
