"""Prompt templates and fixed placeholder copy for listing generation.

The placeholders stand in for each stage when it runs without a real
provider (mock generation, absent OCR) or degrades (visual analysis
timeout).
"""

VISION_SYSTEM_PROMPT = (
    "You are a real estate expert analyzing property photos. Identify and describe:\n"
    "- Interior features: countertops (granite, quartz, marble), flooring (hardwood, tile, carpet), "
    "cabinetry, appliances\n"
    "- Exterior features: pool, deck, patio, landscaping, architectural style\n"
    "- Room types: kitchen, bathroom, bedroom, living room, dining room\n"
    "- Special features: fireplace, vaulted ceilings, skylights, built-ins\n"
    "- Overall condition and quality\n"
    "Be specific and professional."
)

VISION_USER_PROMPT = (
    "Analyze these property photos and list all visible features, upgrades, and amenities. "
    "Focus on high-value features that would appeal to buyers."
)

SYNTHESIS_SYSTEM_PROMPT = """You are a professional real estate copywriter. Generate compelling, accurate listing content based on property information and photos.

Generate:
1. MLS Listing Description (200-300 words): Professional, detailed, highlights key features and amenities. Use proper real estate terminology. No emojis.
2. 5 Targeted Hashtags: Relevant to the property type, location features, and target buyers. No spaces, use camelCase or underscores.
3. Facebook/Instagram Caption: Engaging, social media friendly, includes call-to-action. 2-3 sentences max. Can include emojis.
4. Carousel Text: Brief text for each photo in a carousel post. One sentence per photo, highlighting what's shown.

Return ONLY valid JSON in this exact format:
{
  "mlsDescription": "Full MLS description text here...",
  "hashtags": ["#hashtag1", "#hashtag2", "#hashtag3", "#hashtag4", "#hashtag5"],
  "socialCaption": "Engaging caption text here...",
  "carouselText": "Brief text for carousel post here..."
}"""

SYNTHESIS_USER_PROMPT = (
    "Based on the following property information, generate the MLS listing description, "
    "hashtags, and social media content:\n\n{context}"
)


def build_context(extracted_text: str, visual_analysis: str) -> str:
    return (
        "EXTRACTED TEXT FROM DOCUMENTS/IMAGES:\n"
        f"{extracted_text}\n\n"
        "VISUAL FEATURES IDENTIFIED:\n"
        f"{visual_analysis}"
    ).strip()


NO_TEXT_DETECTED = "No text detected in images."
NO_TEXT_DETECTED_DISPLAY = "No text detected in images by Google Vision OCR."

VISUAL_ANALYSIS_UNAVAILABLE = "Unable to analyze visual features."

DEFAULT_HASHTAGS = ["#RealEstate", "#Property", "#Home", "#Listing", "#ForSale"]

PLACEHOLDER_OCR_TEXT = """Property Details:
- Square Footage: Approximately 2,500 sq ft
- Bedrooms: 4
- Bathrooms: 2.5
- Year Built: 2015
- Lot Size: 0.25 acres

Features:
- Two-car garage
- Central air conditioning
- Hardwood floors
- Updated kitchen and bathrooms
- Energy-efficient windows"""

PLACEHOLDER_VISUAL_ANALYSIS = """Interior Features:
- Modern kitchen with granite countertops and stainless steel appliances
- Hardwood flooring throughout main living areas
- Updated bathrooms with contemporary fixtures
- Spacious bedrooms with ample natural light
- Open floor plan connecting living, dining, and kitchen areas

Exterior Features:
- Well-maintained landscaping with mature trees
- Attached garage with driveway
- Covered front porch
- Backyard with patio area perfect for entertaining

Special Features:
- Vaulted ceilings in main living area
- Fireplace in family room
- Walk-in closets in master bedroom
- Energy-efficient windows
- Updated electrical and plumbing systems"""

MOCK_HASHTAGS = ["#RealEstate", "#HomeForSale", "#PropertyListing", "#DreamHome", "#NewListing"]

MOCK_SOCIAL_CAPTION = (
    "🏡 Beautiful property now available! This stunning home features modern updates, spacious "
    "living areas, and incredible attention to detail. Perfect for families or anyone looking for "
    "their next dream home. Contact us today to schedule a viewing! ✨ #RealEstate #HomeForSale"
)

MOCK_CAROUSEL_TEXT = (
    "Photo 1: Stunning exterior view showcasing the property's curb appeal and attractive landscaping.\n"
    "Photo 2: Spacious living area with an open floor plan and abundant natural light.\n"
    "Photo 3: Modern kitchen featuring updated appliances and quality finishes.\n"
    "Photo 4: Comfortable bedroom with ample space and natural lighting.\n"
    "Photo 5: Well-maintained outdoor space perfect for relaxation and entertaining."
)


def mock_mls_description(image_count: int) -> str:
    """Roughly 250-word placeholder description mentioning the photo count."""
    return (
        "Welcome to this stunning property that offers the perfect blend of comfort and style. "
        f"This beautifully maintained home features {image_count} thoughtfully designed spaces that "
        "create an inviting atmosphere for modern living.\n\n"
        "The interior showcases high-quality finishes throughout, including updated flooring, "
        "contemporary fixtures, and an open floor plan that maximizes natural light. The kitchen is a "
        "chef's dream with modern appliances and ample counter space, perfect for entertaining guests "
        "or preparing family meals.\n\n"
        "The property includes well-appointed bedrooms that provide comfortable retreats, along with "
        "updated bathrooms featuring quality fixtures and finishes. The living areas flow seamlessly, "
        "creating an ideal environment for both relaxation and entertaining.\n\n"
        "Exterior features include attractive landscaping, outdoor living spaces, and a layout that "
        "maximizes both privacy and functionality. This home represents an excellent opportunity for "
        "those seeking a move-in-ready property with modern amenities and timeless appeal.\n\n"
        "Located in a desirable area, this property offers convenient access to local amenities, "
        "schools, and transportation. Don't miss the chance to make this exceptional property your new "
        "home. Schedule a showing today to experience all that this wonderful property has to offer."
    )
