# Services
#
# Organized by domain:
#   - db/            Supabase REST client, lead store, proxy log store
#   - enrichment/    LLM summary of scraped leads
#   - verification/  Email deliverability checks
#   - jobs/          Enrichment tick dispatcher, stuck lead sweep
#   - proxies/       Proxy health aggregation and heal-check prober
