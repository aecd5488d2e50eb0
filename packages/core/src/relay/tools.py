"""OpenAI function-calling tool definitions for the chat assistant.

Descriptions are bilingual because the same schema is sent for Romanian and
English conversations. Every tool is a read-only lookup.
"""

# OpenAI function-calling tool definitions.
TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "check_availability",
            "description": (
                "Check which apartments are free for a stay. "
                "Verifică ce apartamente sunt libere pentru un sejur. "
                "Dates must be YYYY-MM-DD; check_out is the departure day."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "check_in": {
                        "type": "string",
                        "description": "Arrival date / data sosirii (YYYY-MM-DD).",
                    },
                    "check_out": {
                        "type": "string",
                        "description": "Departure date / data plecării (YYYY-MM-DD).",
                    },
                    "guests": {
                        "type": "integer",
                        "description": "Number of guests / număr de oaspeți.",
                    },
                },
                "required": ["check_in", "check_out"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "get_stay_price",
            "description": (
                "Calculate the total price of a stay including cleaning and "
                "service fees. Calculează prețul total al unui sejur, cu taxa "
                "de curățenie și comisionul de serviciu."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "property_name": {
                        "type": "string",
                        "description": "Apartment name or code / numele apartamentului (optional).",
                    },
                    "nights": {
                        "type": "integer",
                        "description": "Number of nights / număr de nopți.",
                    },
                    "guests": {
                        "type": "integer",
                        "description": "Number of guests / număr de oaspeți.",
                    },
                },
                "required": ["nights"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "estimate_owner_profit",
            "description": (
                "Estimate an owner's monthly income from hotel-regime rental "
                "of an apartment. Estimează venitul lunar al unui proprietar "
                "din închirierea în regim hotelier."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "area_sqm": {
                        "type": "number",
                        "description": "Apartment area in square metres / suprafața în mp.",
                    },
                    "location": {
                        "type": "string",
                        "description": "Neighbourhood / zona (optional).",
                    },
                    "occupancy": {
                        "type": "number",
                        "description": "Expected occupancy 0-1 / grad de ocupare 0-1 (optional).",
                    },
                },
                "required": ["area_sqm"],
            },
        },
    },
]

TOOL_NAMES = frozenset(tool["function"]["name"] for tool in TOOLS)
